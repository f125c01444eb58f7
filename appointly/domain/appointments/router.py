"""Appointment router - FastAPI endpoints for booking and status changes"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import Identity, get_current_identity
from ...database import get_db
from ...models import Appointment
from ...shared.validators import format_minutes
from .schemas import (
    AppointmentResponse,
    AppointmentSummary,
    CreateAppointmentRequest,
    StatusUpdateRequest,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_booking_service(request: Request, db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    gateway = getattr(request.app.state, "payment_gateway", None)
    return BookingService(db, payment_gateway=gateway)


def to_response(a: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=a.id,
        customerId=a.customer_id,
        customerName=a.customer_name,
        customerPhone=a.customer_phone,
        staffId=a.staff_id,
        staffName=a.staff_name,
        serviceId=a.service_id,
        serviceName=a.service_name,
        date=a.date,
        time=format_minutes(a.time),
        duration=a.duration,
        price=a.price,
        status=a.status,
        paymentType=a.payment_type,
        paymentStatus=a.payment_status,
        packageUsageId=a.package_usage_id,
        reminderSent=a.reminder_sent,
        notes=a.notes,
        createdAt=a.created_at,
    )


@router.post("", response_model=AppointmentSummary, status_code=201)
async def create_appointment(
    data: CreateAppointmentRequest,
    identity: Identity = Depends(get_current_identity),
    service: BookingService = Depends(get_booking_service),
):
    """Book an appointment; 409 when the slot was taken meanwhile"""
    appointment = service.create_appointment(data, identity)
    return AppointmentSummary(
        id=appointment.id,
        customerName=appointment.customer_name,
        serviceName=appointment.service_name,
        staffName=appointment.staff_name,
        date=appointment.date,
        time=format_minutes(appointment.time),
        status=appointment.status,
    )


@router.get("", response_model=list[AppointmentResponse])
async def get_appointments(
    day: Optional[date] = Query(None, alias="date"),
    status: Optional[str] = Query(None),
    staff_id: Optional[int] = Query(None, alias="staffId"),
    identity: Identity = Depends(get_current_identity),
    service: BookingService = Depends(get_booking_service),
):
    """List appointments, optionally filtered by date, status and staff"""
    appointments = service.list_appointments(identity, day=day, status=status, staff_id=staff_id)
    return [to_response(a) for a in appointments]


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    identity: Identity = Depends(get_current_identity),
    service: BookingService = Depends(get_booking_service),
):
    return to_response(service.get_appointment(appointment_id, identity))


@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    data: StatusUpdateRequest,
    identity: Identity = Depends(get_current_identity),
    service: BookingService = Depends(get_booking_service),
):
    """Move an appointment through its lifecycle"""
    return to_response(service.update_status(appointment_id, data.status, identity))


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    identity: Identity = Depends(get_current_identity),
    service: BookingService = Depends(get_booking_service),
):
    """Cancel an appointment and free its slot"""
    return to_response(service.cancel_appointment(appointment_id, identity))
