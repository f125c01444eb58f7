"""Appointment domain schemas - Pydantic models for validation"""

import datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import parse_hhmm


class CreateAppointmentRequest(BaseModel):
    """Schema for booking an appointment"""

    serviceId: int
    staffId: int
    date: datetime.date
    time: str
    # Existing customer, or name + phone for find-or-create
    customerId: Optional[int] = None
    customerName: Optional[str] = None
    customerPhone: Optional[str] = None
    notes: Optional[str] = None
    paymentType: Literal["cash", "card", "package"] = "cash"
    customerPackageId: Optional[int] = None
    paymentReference: Optional[str] = None
    paymentStatus: Optional[str] = None

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        parse_hhmm(v)
        return v.strip()


class AppointmentSummary(BaseModel):
    """Schema returned after a successful booking"""

    id: int
    customerName: Optional[str] = None
    serviceName: Optional[str] = None
    staffName: Optional[str] = None
    date: datetime.date
    time: str
    status: str


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""

    id: int
    customerId: int
    customerName: Optional[str] = None
    customerPhone: Optional[str] = None
    staffId: int
    staffName: Optional[str] = None
    serviceId: int
    serviceName: Optional[str] = None
    date: datetime.date
    time: str
    duration: int
    price: float
    status: str
    paymentType: str
    paymentStatus: str
    packageUsageId: Optional[int] = None
    reminderSent: bool
    notes: Optional[str] = None
    createdAt: Optional[datetime.datetime] = None

    class Config:
        from_attributes = True


class StatusUpdateRequest(BaseModel):
    status: str
