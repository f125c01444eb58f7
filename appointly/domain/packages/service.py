"""Package credit ledger - Business logic for prepaid package credits"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import (
    PACKAGE_ACTIVE,
    PACKAGE_COMPLETED,
    CustomerPackage,
    PackageUsage,
    Transaction,
)
from ...shared.errors import (
    InsufficientCredit,
    NotFound,
    PackageAlreadyAssigned,
    PackageInactive,
)
from ...shared.validators import local_now
from .repository import PackageRepository
from .schemas import AssignPackageRequest

logger = logging.getLogger(__name__)


class PackageLedger:
    """Service layer for package assignment, consumption and removal"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PackageRepository()

    def assign_package(self, tenant_id: int, data: AssignPackageRequest) -> CustomerPackage:
        """
        Sell a package to a customer.

        Creates the CustomerPackage, one usage row per package item and a sale
        transaction in a single commit.
        """
        customer = self.repo.get_customer(self.db, data.customerId, tenant_id)
        if not customer:
            raise NotFound("Customer not found")
        package = self.repo.get_package(self.db, data.packageId, tenant_id)
        if not package:
            raise NotFound("Package not found")
        staff = self.repo.get_staff(self.db, data.staffId, tenant_id)
        if not staff:
            raise NotFound("Staff member not found")

        if self.repo.find_assignment(self.db, customer.id, package.id):
            raise PackageAlreadyAssigned("This package is already assigned to the customer")

        customer_package = CustomerPackage(
            customer_id=customer.id,
            package_id=package.id,
            tenant_id=tenant_id,
            staff_id=staff.id,
            status=PACKAGE_ACTIVE,
            expires_at=data.expiresAt,
            usages=[
                PackageUsage(
                    item_type=item.item_type,
                    item_id=item.item_id,
                    item_name=item.item_name,
                    total_quantity=item.quantity,
                    used_quantity=0,
                    remaining_quantity=item.quantity,
                )
                for item in package.items
            ],
        )
        sale = Transaction(
            tenant_id=tenant_id,
            type="package",
            amount=package.price,
            description=f"{package.name} package - {customer.full_name}",
            payment_type=data.paymentType,
            customer_id=customer.id,
            customer_name=customer.full_name,
            package_id=package.id,
            staff_id=staff.id,
            date=local_now().date(),
        )

        try:
            self.db.add(customer_package)
            self.db.add(sale)
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent assignment of the same package
            self.db.rollback()
            raise PackageAlreadyAssigned("This package is already assigned to the customer")
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(customer_package)
        logger.info(
            f"Package {package.id} assigned to customer {customer.id} "
            f"({len(customer_package.usages)} items, sale {package.price:.2f})"
        )
        return customer_package

    def consume_credit(
        self,
        customer_package_id: int,
        item_type: str,
        item_id: int,
        tenant_id: Optional[int] = None,
        commit: bool = True,
        now: Optional[datetime] = None,
    ) -> PackageUsage:
        """
        Consume one credit of a package item.

        With ``commit=False`` the change is only flushed so the caller can make
        it part of a larger transaction (booking).

        Raises:
            NotFound: unknown package, or the package has no such item
            PackageInactive: package is not active or has expired
            InsufficientCredit: no credit left (including completed packages);
                nothing is changed
        """
        customer_package = self.repo.get_customer_package(self.db, customer_package_id, tenant_id)
        if not customer_package:
            raise NotFound("Customer package not found")

        usage = next(
            (
                u
                for u in customer_package.usages
                if u.item_type == item_type and u.item_id == item_id
            ),
            None,
        )
        if not usage:
            raise NotFound("Package does not include this item")

        now = now or local_now()
        if customer_package.status == PACKAGE_COMPLETED:
            # Every credit is used up
            raise InsufficientCredit("No remaining credit for this package item")
        if customer_package.status != PACKAGE_ACTIVE:
            raise PackageInactive(f"Customer package is {customer_package.status}")
        if customer_package.expires_at and customer_package.expires_at <= now:
            raise PackageInactive("Customer package has expired")

        self.repo.lock_customer_package(self.db, customer_package.id)
        if not self.repo.decrement_usage(self.db, usage.id):
            logger.warning(
                f"Insufficient credit on usage {usage.id} (customer package {customer_package_id})"
            )
            if commit:
                self.db.rollback()
            raise InsufficientCredit("No remaining credit for this package item")

        self.db.refresh(usage)
        # Sibling usages in the session may be stale; count what the database holds
        if self.repo.remaining_credit(self.db, customer_package.id) <= 0:
            customer_package.status = PACKAGE_COMPLETED
            logger.info(f"All credits used - customer package {customer_package_id} completed")

        if commit:
            self.db.commit()
            self.db.refresh(usage)
        else:
            self.db.flush()

        logger.info(
            f"Consumed 1 credit of {item_type}:{item_id} from customer package "
            f"{customer_package_id} ({usage.remaining_quantity} left)"
        )
        return usage

    def find_credit_for_service(
        self, customer_id: int, tenant_id: int, service_id: int, now: Optional[datetime] = None
    ) -> Optional[PackageUsage]:
        return self.repo.find_usage_for_item(
            self.db, customer_id, tenant_id, "service", service_id, now or local_now()
        )

    def list_customer_packages(
        self, customer_id: int, tenant_id: int, active_only: bool = False
    ) -> list[CustomerPackage]:
        if not self.repo.get_customer(self.db, customer_id, tenant_id):
            raise NotFound("Customer not found")
        packages = self.repo.list_customer_packages(self.db, customer_id, tenant_id, active_only)
        if active_only:
            packages = [
                cp for cp in packages if any(u.remaining_quantity > 0 for u in cp.usages)
            ]
        return packages

    def remove_customer_package(self, customer_package_id: int, tenant_id: int) -> dict:
        """Delete an assignment together with all of its usage rows"""
        customer_package = self.repo.get_customer_package(self.db, customer_package_id, tenant_id)
        if not customer_package:
            raise NotFound("Customer package not found")

        used = sum(u.used_quantity for u in customer_package.usages)
        if used:
            # Consumed credits are not refunded or reconciled
            logger.warning(
                f"Removing customer package {customer_package_id} with {used} consumed credit(s)"
            )

        try:
            self.repo.detach_appointments(self.db, [u.id for u in customer_package.usages])
            self.repo.delete_customer_package(self.db, customer_package)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Customer package {customer_package_id} removed")
        return {"message": "Package removed from customer"}
