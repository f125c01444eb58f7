"""Booking service - Reservation and lifecycle of appointments"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...auth import Identity
from ...models import (
    PAYMENT_CARD,
    PAYMENT_PACKAGE,
    STATUS_CANCELLED,
    STATUS_NO_SHOW,
    Appointment,
    Customer,
    PackageUsage,
)
from ...services.payment_gateway import PaymentGateway, check_card_payment
from ...shared.errors import (
    BookingError,
    CustomerBlacklisted,
    InsufficientCredit,
    InvalidStatusTransition,
    NotFound,
    PaymentNotCaptured,
    SlotConflict,
    ValidationFailed,
)
from ...shared.tenant_settings import load_settings
from ...shared.validators import local_now, normalize_phone, parse_hhmm
from ..packages.repository import PackageRepository
from ..packages.service import PackageLedger
from .lifecycle import (
    ALL_STATUSES,
    initial_payment_status,
    initial_status,
    validate_status_transition,
)
from .repository import AppointmentRepository
from .schemas import CreateAppointmentRequest

logger = logging.getLogger(__name__)

# (constraint name as PostgreSQL reports it, column list as SQLite reports it)
ACTIVE_SLOT_KEY = (
    "uq_appointments_active_slot",
    "appointments.staff_id, appointments.date, appointments.time",
)
CUSTOMER_PHONE_KEY = ("uq_customers_tenant_phone", "customers.tenant_id, customers.phone")


def violates(error: IntegrityError, key: tuple[str, str]) -> bool:
    """True when the integrity error comes from the given unique key"""
    message = str(error.orig)
    return any(part in message for part in key)


class BookingService:
    """Service layer for booking and appointment status changes"""

    def __init__(self, db: Session, payment_gateway: Optional[PaymentGateway] = None):
        self.db = db
        self.repo = AppointmentRepository()
        self.ledger = PackageLedger(db)
        self.payment_gateway = payment_gateway

    # ------------------------------------------------------------------
    # Reservation
    # ------------------------------------------------------------------

    def create_appointment(self, data: CreateAppointmentRequest, identity: Identity) -> Appointment:
        """
        Reserve a slot and create the appointment.

        Everything (customer creation, package credit, appointment row) is
        committed once; any failure rolls the whole booking back.
        """
        try:
            return self._reserve(data, identity)
        except IntegrityError as e:
            if not violates(e, CUSTOMER_PHONE_KEY):
                raise
            # A concurrent booking created this customer first; the retry finds it
            logger.info(f"Customer phone for tenant {identity.tenant_id} created concurrently, retrying")
            return self._reserve(data, identity)

    def _reserve(self, data: CreateAppointmentRequest, identity: Identity) -> Appointment:
        tenant_id = identity.tenant_id
        start = parse_hhmm(data.time)

        try:
            service = self.repo.get_service(self.db, data.serviceId, tenant_id)
            if not service:
                raise NotFound("Service not found")
            if not self.repo.get_staff(self.db, data.staffId, tenant_id):
                raise NotFound("Staff member not found")

            customer = self._resolve_customer(data, identity)
            if customer.is_blacklisted:
                logger.warning(f"Blocked booking for blacklisted customer {customer.id}")
                raise CustomerBlacklisted("Customer is blacklisted and cannot book appointments")

            # Serializes bookings for this staff member until commit
            staff = self.repo.get_staff(self.db, data.staffId, tenant_id, lock=True)
            end = start + service.duration
            clash = self.repo.find_overlapping(self.db, staff.id, data.date, start, end)
            if clash:
                logger.info(
                    f"Slot conflict for staff {staff.id} on {data.date} {data.time}: "
                    f"overlaps appointment {clash.id}"
                )
                raise SlotConflict("This time slot is already booked")

            if data.paymentType == PAYMENT_CARD and not check_card_payment(
                self.payment_gateway, data.paymentReference, data.paymentStatus, service.price
            ):
                raise PaymentNotCaptured("Card payment has not been captured")

            usage = None
            if data.paymentType == PAYMENT_PACKAGE:
                usage = self._consume_package_credit(data, customer, service.id, tenant_id)

            appointment = Appointment(
                tenant_id=tenant_id,
                customer_id=customer.id,
                staff_id=staff.id,
                service_id=service.id,
                date=data.date,
                time=start,
                duration=service.duration,
                price=service.price,
                status=initial_status(data.paymentType),
                payment_type=data.paymentType,
                payment_status=initial_payment_status(data.paymentType),
                package_usage_id=usage.id if usage else None,
                customer_name=customer.full_name,
                customer_phone=customer.phone,
                service_name=service.name,
                staff_name=staff.full_name,
                notes=data.notes,
            )
            self.repo.add_appointment(self.db, appointment)
            self.db.commit()
        except BookingError:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            if not violates(e, ACTIVE_SLOT_KEY):
                raise
            # A concurrent booking took the same staff/date/time first
            logger.info(
                f"Unique slot violation for staff {data.staffId} on {data.date} {data.time}: {e.orig}"
            )
            raise SlotConflict("This time slot is already booked")
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info(
            f"Appointment {appointment.id} booked: staff {appointment.staff_id} "
            f"{appointment.date} {data.time} ({appointment.status}, {appointment.payment_type})"
        )
        return appointment

    def _resolve_customer(self, data: CreateAppointmentRequest, identity: Identity) -> Customer:
        tenant_id = identity.tenant_id
        customer_id = identity.customer_id if identity.is_customer else data.customerId

        if customer_id is not None:
            customer = self.repo.get_customer(self.db, customer_id, tenant_id)
            if not customer:
                raise NotFound("Customer not found")
            return customer

        if not (data.customerName and data.customerName.strip() and data.customerPhone):
            raise ValidationFailed("Either customerId or customerName and customerPhone are required")

        try:
            phone = normalize_phone(data.customerPhone)
        except ValueError as e:
            raise ValidationFailed(str(e))

        customer = self.repo.find_customer_by_phone(self.db, phone, tenant_id)
        if customer:
            return customer

        first_name, _, last_name = data.customerName.strip().partition(" ")
        customer = self.repo.create_customer(
            self.db,
            tenant_id,
            first_name=first_name,
            last_name=last_name.strip() or None,
            phone=phone,
        )
        logger.info(f"Created customer {customer.id} for tenant {tenant_id} during booking")
        return customer

    def _consume_package_credit(
        self, data: CreateAppointmentRequest, customer: Customer, service_id: int, tenant_id: int
    ) -> PackageUsage:
        customer_package_id = data.customerPackageId
        if customer_package_id is not None:
            customer_package = PackageRepository.get_customer_package(
                self.db, customer_package_id, tenant_id
            )
            if not customer_package or customer_package.customer_id != customer.id:
                raise NotFound("Customer package not found")
        else:
            match = self.ledger.find_credit_for_service(customer.id, tenant_id, service_id)
            if not match:
                raise InsufficientCredit("No package credit available for this service")
            customer_package_id = match.customer_package_id

        return self.ledger.consume_credit(
            customer_package_id, "service", service_id, tenant_id=tenant_id, commit=False
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_appointments(
        self,
        identity: Identity,
        day: Optional[date] = None,
        status: Optional[str] = None,
        staff_id: Optional[int] = None,
    ) -> list[Appointment]:
        """Appointments visible to the caller; customers only see their own"""
        customer_id = identity.customer_id if identity.is_customer else None
        if identity.user_type == "staff" and staff_id is None:
            staff_id = identity.staff_id
        return self.repo.list_appointments(
            self.db, identity.tenant_id, day=day, status=status, staff_id=staff_id, customer_id=customer_id
        )

    def get_appointment(self, appointment_id: int, identity: Identity) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id, identity.tenant_id)
        if not appointment or (
            identity.is_customer and appointment.customer_id != identity.customer_id
        ):
            raise NotFound("Appointment not found")
        return appointment

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def update_status(self, appointment_id: int, new_status: str, identity: Identity) -> Appointment:
        """
        Apply a status transition.

        Cancelling frees the slot at once; consumed package credit is not
        restored. A no-show counts against the customer and blacklists them
        once the tenant's threshold is reached.
        """
        if new_status not in ALL_STATUSES:
            raise ValidationFailed(f"Unknown status: {new_status}")

        appointment = self.get_appointment(appointment_id, identity)
        if identity.is_customer and new_status != STATUS_CANCELLED:
            raise InvalidStatusTransition("Customers can only cancel their appointments")

        old_status = appointment.status
        if not validate_status_transition(old_status, new_status):
            raise InvalidStatusTransition(f"Cannot change status from {old_status} to {new_status}")
        if old_status == new_status:
            return appointment

        try:
            appointment.status = new_status
            if new_status == STATUS_NO_SHOW:
                self._record_no_show(appointment)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info(f"Appointment {appointment.id} status {old_status} -> {new_status}")
        return appointment

    def cancel_appointment(self, appointment_id: int, identity: Identity) -> Appointment:
        return self.update_status(appointment_id, STATUS_CANCELLED, identity)

    def _record_no_show(self, appointment: Appointment) -> None:
        customer = appointment.customer
        if not customer:
            return

        settings = load_settings(self.db, appointment.tenant_id)
        self.repo.increment_no_show(self.db, customer.id)
        self.db.refresh(customer)
        if not customer.is_blacklisted and customer.no_show_count >= settings.blacklist_threshold:
            customer.is_blacklisted = True
            customer.blacklisted_at = local_now()
            logger.warning(
                f"Customer {customer.id} blacklisted after {customer.no_show_count} no-shows "
                f"(threshold {settings.blacklist_threshold})"
            )


