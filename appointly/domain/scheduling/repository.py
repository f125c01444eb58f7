"""Scheduling repository - Database reads for availability"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models import STATUS_CANCELLED, Appointment, Service, Staff, Tenant


class SchedulingRepository:
    """Repository for availability lookups"""

    @staticmethod
    def get_tenant(db: Session, tenant_id: int) -> Optional[Tenant]:
        return db.query(Tenant).filter(Tenant.id == tenant_id).first()

    @staticmethod
    def get_staff(db: Session, staff_id: int, tenant_id: int) -> Optional[Staff]:
        return db.query(Staff).filter(Staff.id == staff_id, Staff.tenant_id == tenant_id).first()

    @staticmethod
    def get_service(db: Session, service_id: int, tenant_id: int) -> Optional[Service]:
        return (
            db.query(Service)
            .filter(Service.id == service_id, Service.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def get_booked_intervals(db: Session, staff_id: int, day: date) -> list[tuple[int, int]]:
        """(start_minute, duration) of every non-cancelled appointment of a staff member"""
        rows = (
            db.query(Appointment.time, Appointment.duration)
            .filter(
                Appointment.staff_id == staff_id,
                Appointment.date == day,
                Appointment.status != STATUS_CANCELLED,
            )
            .order_by(Appointment.time)
            .all()
        )
        return [(row.time, row.duration) for row in rows]
