"""Appointment repository - Database operations for appointments"""

from datetime import date
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models import STATUS_CANCELLED, Appointment, Customer, Service, Staff


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_service(db: Session, service_id: int, tenant_id: int) -> Optional[Service]:
        return (
            db.query(Service)
            .filter(Service.id == service_id, Service.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def get_staff(db: Session, staff_id: int, tenant_id: int, lock: bool = False) -> Optional[Staff]:
        """
        Get a staff member; with ``lock`` the row stays locked until commit so
        concurrent bookings for the same staff member run one after another.
        """
        query = db.query(Staff).filter(Staff.id == staff_id, Staff.tenant_id == tenant_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_customer(db: Session, customer_id: int, tenant_id: int) -> Optional[Customer]:
        return (
            db.query(Customer)
            .filter(Customer.id == customer_id, Customer.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def find_customer_by_phone(db: Session, phone: str, tenant_id: int) -> Optional[Customer]:
        return (
            db.query(Customer)
            .filter(Customer.phone == phone, Customer.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def create_customer(db: Session, tenant_id: int, **customer_data) -> Customer:
        customer = Customer(tenant_id=tenant_id, **customer_data)
        db.add(customer)
        db.flush()
        return customer

    @staticmethod
    def find_overlapping(
        db: Session, staff_id: int, day: date, start: int, end: int
    ) -> Optional[Appointment]:
        """First non-cancelled appointment whose [time, time + duration) meets [start, end)"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.staff_id == staff_id,
                Appointment.date == day,
                Appointment.status != STATUS_CANCELLED,
                Appointment.time < end,
                (Appointment.time + Appointment.duration) > start,
            )
            .order_by(Appointment.time)
            .first()
        )

    @staticmethod
    def add_appointment(db: Session, appointment: Appointment) -> Appointment:
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def get_appointment(db: Session, appointment_id: int, tenant_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id, Appointment.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def list_appointments(
        db: Session,
        tenant_id: int,
        day: Optional[date] = None,
        status: Optional[str] = None,
        staff_id: Optional[int] = None,
        customer_id: Optional[int] = None,
    ) -> list[Appointment]:
        query = db.query(Appointment).filter(Appointment.tenant_id == tenant_id)

        if day:
            query = query.filter(Appointment.date == day)
        if status:
            query = query.filter(Appointment.status == status)
        if staff_id:
            query = query.filter(Appointment.staff_id == staff_id)
        if customer_id:
            query = query.filter(Appointment.customer_id == customer_id)

        return query.order_by(Appointment.date.asc(), Appointment.time.asc()).all()

    @staticmethod
    def increment_no_show(db: Session, customer_id: int) -> None:
        """Count a no-show in the database rather than from a possibly stale copy"""
        db.execute(
            update(Customer)
            .where(Customer.id == customer_id)
            .values(no_show_count=Customer.no_show_count + 1)
            .execution_options(synchronize_session=False)
        )
