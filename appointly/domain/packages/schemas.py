"""Package domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class AssignPackageRequest(BaseModel):
    """Schema for selling a package to a customer"""

    customerId: int
    packageId: int
    staffId: int
    paymentType: Literal["cash", "card"] = "cash"
    expiresAt: Optional[datetime] = None


class PackageUsageResponse(BaseModel):
    id: int
    itemType: str
    itemId: int
    itemName: Optional[str] = None
    totalQuantity: int
    usedQuantity: int
    remainingQuantity: int


class CustomerPackageResponse(BaseModel):
    """Schema for an assigned package and its credit balances"""

    id: int
    customerId: int
    packageId: int
    packageName: Optional[str] = None
    staffId: Optional[int] = None
    status: str
    assignedAt: Optional[datetime] = None
    expiresAt: Optional[datetime] = None
    usages: list[PackageUsageResponse]

    class Config:
        from_attributes = True
