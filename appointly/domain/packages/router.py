"""Package router - FastAPI endpoints for package assignment"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import Identity, get_current_identity
from ...database import get_db
from ...models import CustomerPackage
from .schemas import AssignPackageRequest, CustomerPackageResponse, PackageUsageResponse
from .service import PackageLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/packages", tags=["Packages"])


def get_package_ledger(db: Session = Depends(get_db)) -> PackageLedger:
    """Dependency injection for PackageLedger"""
    return PackageLedger(db)


def to_response(customer_package: CustomerPackage) -> CustomerPackageResponse:
    return CustomerPackageResponse(
        id=customer_package.id,
        customerId=customer_package.customer_id,
        packageId=customer_package.package_id,
        packageName=customer_package.package.name if customer_package.package else None,
        staffId=customer_package.staff_id,
        status=customer_package.status,
        assignedAt=customer_package.assigned_at,
        expiresAt=customer_package.expires_at,
        usages=[
            PackageUsageResponse(
                id=u.id,
                itemType=u.item_type,
                itemId=u.item_id,
                itemName=u.item_name,
                totalQuantity=u.total_quantity,
                usedQuantity=u.used_quantity,
                remainingQuantity=u.remaining_quantity,
            )
            for u in customer_package.usages
        ],
    )


def require_business_user(identity: Identity) -> None:
    if identity.is_customer:
        raise HTTPException(status_code=403, detail="Only business users can manage packages")


@router.post("/assign", response_model=CustomerPackageResponse)
async def assign_package(
    data: AssignPackageRequest,
    identity: Identity = Depends(get_current_identity),
    ledger: PackageLedger = Depends(get_package_ledger),
):
    """Sell a package to a customer and record the sale"""
    require_business_user(identity)
    return to_response(ledger.assign_package(identity.tenant_id, data))


@router.get("/customers/{customer_id}", response_model=list[CustomerPackageResponse])
async def get_customer_packages(
    customer_id: int,
    active_only: bool = Query(False, alias="activeOnly"),
    identity: Identity = Depends(get_current_identity),
    ledger: PackageLedger = Depends(get_package_ledger),
):
    """Packages of a customer with their remaining credits"""
    if identity.is_customer and identity.customer_id != customer_id:
        raise HTTPException(status_code=403, detail="Customers can only view their own packages")
    packages = ledger.list_customer_packages(customer_id, identity.tenant_id, active_only)
    return [to_response(cp) for cp in packages]


@router.delete("/customer-packages/{customer_package_id}")
async def remove_customer_package(
    customer_package_id: int,
    identity: Identity = Depends(get_current_identity),
    ledger: PackageLedger = Depends(get_package_ledger),
):
    """Remove a package assignment and all of its credits"""
    require_business_user(identity)
    return ledger.remove_customer_package(customer_package_id, identity.tenant_id)
