"""Package repository - Database operations for prepaid package credits"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session, joinedload

from ...models import (
    PACKAGE_ACTIVE,
    Appointment,
    Customer,
    CustomerPackage,
    Package,
    PackageUsage,
    Staff,
)


class PackageRepository:
    """Repository for package assignment and credit ledger operations"""

    @staticmethod
    def get_customer(db: Session, customer_id: int, tenant_id: int) -> Optional[Customer]:
        return (
            db.query(Customer)
            .filter(Customer.id == customer_id, Customer.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def get_staff(db: Session, staff_id: int, tenant_id: int) -> Optional[Staff]:
        return db.query(Staff).filter(Staff.id == staff_id, Staff.tenant_id == tenant_id).first()

    @staticmethod
    def get_package(db: Session, package_id: int, tenant_id: int) -> Optional[Package]:
        return (
            db.query(Package)
            .options(joinedload(Package.items))
            .filter(Package.id == package_id, Package.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def get_customer_package(
        db: Session, customer_package_id: int, tenant_id: Optional[int] = None
    ) -> Optional[CustomerPackage]:
        query = (
            db.query(CustomerPackage)
            .options(joinedload(CustomerPackage.usages))
            .filter(CustomerPackage.id == customer_package_id)
        )
        if tenant_id is not None:
            query = query.filter(CustomerPackage.tenant_id == tenant_id)
        return query.first()

    @staticmethod
    def find_assignment(db: Session, customer_id: int, package_id: int) -> Optional[CustomerPackage]:
        return (
            db.query(CustomerPackage)
            .filter(
                CustomerPackage.customer_id == customer_id,
                CustomerPackage.package_id == package_id,
            )
            .first()
        )

    @staticmethod
    def list_customer_packages(
        db: Session, customer_id: int, tenant_id: int, active_only: bool = False
    ) -> list[CustomerPackage]:
        query = (
            db.query(CustomerPackage)
            .options(joinedload(CustomerPackage.usages), joinedload(CustomerPackage.package))
            .filter(CustomerPackage.customer_id == customer_id, CustomerPackage.tenant_id == tenant_id)
        )
        if active_only:
            query = query.filter(CustomerPackage.status == PACKAGE_ACTIVE)
        return query.order_by(CustomerPackage.assigned_at.desc()).all()

    @staticmethod
    def find_usage_for_item(
        db: Session, customer_id: int, tenant_id: int, item_type: str, item_id: int, now: datetime
    ) -> Optional[PackageUsage]:
        """Usage row with credit left on an active, unexpired package; soonest expiry first"""
        return (
            db.query(PackageUsage)
            .join(CustomerPackage, PackageUsage.customer_package_id == CustomerPackage.id)
            .filter(
                CustomerPackage.customer_id == customer_id,
                CustomerPackage.tenant_id == tenant_id,
                CustomerPackage.status == PACKAGE_ACTIVE,
                or_(CustomerPackage.expires_at.is_(None), CustomerPackage.expires_at > now),
                PackageUsage.item_type == item_type,
                PackageUsage.item_id == item_id,
                PackageUsage.remaining_quantity > 0,
            )
            .order_by(
                CustomerPackage.expires_at.is_(None),
                CustomerPackage.expires_at,
                CustomerPackage.assigned_at,
                CustomerPackage.id,
            )
            .first()
        )

    @staticmethod
    def decrement_usage(db: Session, usage_id: int) -> bool:
        """
        Compare-and-decrement one credit.

        The remaining > 0 guard and both counter changes run as a single UPDATE,
        so concurrent callers can never drive the balance negative.
        Returns False when no credit was left.
        """
        result = db.execute(
            update(PackageUsage)
            .where(PackageUsage.id == usage_id, PackageUsage.remaining_quantity > 0)
            .values(
                used_quantity=PackageUsage.used_quantity + 1,
                remaining_quantity=PackageUsage.remaining_quantity - 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def detach_appointments(db: Session, usage_ids: list[int]) -> int:
        if not usage_ids:
            return 0
        result = db.execute(
            update(Appointment)
            .where(Appointment.package_usage_id.in_(usage_ids))
            .values(package_usage_id=None)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    def delete_customer_package(db: Session, customer_package: CustomerPackage) -> None:
        db.delete(customer_package)

    @staticmethod
    def lock_customer_package(db: Session, customer_package_id: int) -> None:
        """Hold the package row until commit so its usages are consumed one caller at a time"""
        (
            db.query(CustomerPackage.id)
            .filter(CustomerPackage.id == customer_package_id)
            .with_for_update()
            .first()
        )

    @staticmethod
    def remaining_credit(db: Session, customer_package_id: int) -> int:
        """Credits left across all items of a package, read from the database"""
        total = (
            db.query(func.coalesce(func.sum(PackageUsage.remaining_quantity), 0))
            .filter(PackageUsage.customer_package_id == customer_package_id)
            .scalar()
        )
        return int(total)
