"""Availability service - working hours plus existing bookings to a slot grid"""

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...config import DEFAULT_SERVICE_DURATION
from ...shared.errors import NotFound
from ...shared.tenant_settings import ResolvedSettings, load_settings
from ...shared.validators import local_now
from .repository import SchedulingRepository
from .slots import Slot, generate_slots
from .working_hours import EffectiveHours, build_provider_chain, resolve_working_hours

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Service layer for availability queries"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRepository()

    def get_effective_hours(self, tenant_id: int, staff_id: int, day: date) -> EffectiveHours:
        staff = self.repo.get_staff(self.db, staff_id, tenant_id)
        if not staff:
            raise NotFound("Staff member not found")
        tenant = self.repo.get_tenant(self.db, tenant_id)
        if not tenant:
            raise NotFound("Tenant not found")

        providers = build_provider_chain(staff.working_hours, tenant.working_hours)
        return resolve_working_hours(day, providers)

    def get_availability(
        self,
        tenant_id: int,
        staff_id: int,
        day: date,
        service_id: Optional[int] = None,
        settings: Optional[ResolvedSettings] = None,
        now: Optional[datetime] = None,
    ) -> list[Slot]:
        """Slot grid for one staff member and date"""
        hours = self.get_effective_hours(tenant_id, staff_id, day)
        if hours.closed:
            logger.info(f"Staff {staff_id} is closed on {day}")
            return []

        duration = DEFAULT_SERVICE_DURATION
        if service_id is not None:
            service = self.repo.get_service(self.db, service_id, tenant_id)
            if not service:
                raise NotFound("Service not found")
            duration = service.duration

        settings = settings or load_settings(self.db, tenant_id)
        booked = self.repo.get_booked_intervals(self.db, staff_id, day)

        return generate_slots(
            day=day,
            hours=hours,
            duration=duration,
            interval=settings.appointment_time_interval,
            booked=booked,
            now=now or local_now(),
        )
