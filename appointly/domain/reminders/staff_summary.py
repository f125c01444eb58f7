"""
Daily staff summary

Once a day every active staff member with a phone number gets a WhatsApp
message listing their pending/confirmed appointments for the day. Staff with
nothing booked are skipped. One staff member's failure never stops the run.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from ...config import NOTIFICATION_TIMEOUT_SECONDS, REMINDER_PACING_SECONDS
from ...models import Appointment, Staff, Tenant
from ...services.notification_channels import NotificationChannel
from ...shared.validators import local_now, normalize_phone
from ..appointments.lifecycle import ACTIVE_STATUSES
from .dispatcher import record_attempt, send_with_timeout
from .messages import render_staff_summary

logger = logging.getLogger(__name__)

MESSAGE_TYPE = "daily_staff_summary"
SUMMARY_CHANNEL = "whatsapp"


def pick_channel(channels: Sequence[NotificationChannel]) -> Optional[NotificationChannel]:
    return next((c for c in channels if c.name == SUMMARY_CHANNEL), None)


class StaffSummaryDispatcher:
    """Sends each staff member the list of today's appointments"""

    def __init__(
        self,
        db: Session,
        channels: Sequence[NotificationChannel],
        pacing_seconds: float = REMINDER_PACING_SECONDS,
        send_timeout: float = NOTIFICATION_TIMEOUT_SECONDS,
    ):
        self.db = db
        self.channel = pick_channel(channels)
        self.pacing_seconds = pacing_seconds
        self.send_timeout = send_timeout

    def find_staff(self) -> list[tuple[Staff, Tenant]]:
        return (
            self.db.query(Staff, Tenant)
            .join(Tenant, Tenant.id == Staff.tenant_id)
            .filter(Staff.status == "active", Staff.phone.isnot(None), Staff.phone != "")
            .order_by(Staff.tenant_id, Staff.id)
            .all()
        )

    def agenda(self, staff: Staff, day: date) -> list[Appointment]:
        return (
            self.db.query(Appointment)
            .filter(
                Appointment.tenant_id == staff.tenant_id,
                Appointment.staff_id == staff.id,
                Appointment.date == day,
                Appointment.status.in_(ACTIVE_STATUSES),
            )
            .order_by(Appointment.time, Appointment.id)
            .all()
        )

    async def _notify(self, staff: Staff, tenant: Tenant, day: date) -> str:
        appointments = self.agenda(staff, day)
        if not appointments:
            logger.debug(f"Staff {staff.id} has no appointments on {day}, skipping")
            return "skipped"

        try:
            recipient = normalize_phone(staff.phone)
        except ValueError as e:
            logger.warning(f"Staff {staff.id} has unusable phone: {e}")
            return "failed"

        body = render_staff_summary(staff.first_name, day, appointments, tenant.name)
        result = await send_with_timeout(self.channel, recipient, body, self.send_timeout)
        record_attempt(self.db, staff.tenant_id, self.channel, recipient, body, MESSAGE_TYPE, result)

        if not result.success:
            logger.error(f"Daily summary to staff {staff.id} failed: {result.error}")
            return "failed"
        logger.info(f"Daily summary sent to staff {staff.id} ({len(appointments)} appointments)")
        return "sent"

    async def run(self, now: Optional[datetime] = None) -> dict:
        """
        Send today's summaries.

        Returns:
            dict: {total, sent, failed, skipped}; total counts eligible staff
        """
        day = (now or local_now()).date()
        summary = {"total": 0, "sent": 0, "failed": 0, "skipped": 0}

        if self.channel is None:
            logger.error(f"No {SUMMARY_CHANNEL} channel configured; daily staff summary not sent")
            return summary

        staff_rows = self.find_staff()
        summary["total"] = len(staff_rows)
        logger.info(f"Daily staff summary for {day}: {len(staff_rows)} active staff member(s)")

        for staff, tenant in staff_rows:
            try:
                outcome = await self._notify(staff, tenant, day)
            except Exception as e:
                self.db.rollback()
                logger.error(f"Error sending daily summary to staff {staff.id}: {e}")
                outcome = "failed"
            summary[outcome] += 1

            if outcome != "skipped" and self.pacing_seconds:
                await asyncio.sleep(self.pacing_seconds)

        logger.info(f"Daily staff summary for {day} complete: {summary}")
        return summary
