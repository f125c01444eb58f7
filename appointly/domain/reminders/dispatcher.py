"""
Reminder batch dispatcher

Runs periodically (arq cron or the /reminders/run endpoint). Every run:

1. groups tenants by their reminder offset (minutes before the appointment),
2. per offset finds unsent pending/confirmed appointments starting exactly
   offset minutes from now (optionally a short catch-up window),
3. claims each appointment with a conditional UPDATE before any external
   call, so overlapping runs never send the same reminder twice,
4. sends a WhatsApp and an SMS message; one acknowledged channel is enough.
   When both fail the claim is released for a later run.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional, Sequence

from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session

from ...config import (
    NOTIFICATION_TIMEOUT_SECONDS,
    REMINDER_CATCHUP_MINUTES,
    REMINDER_MAX_CONCURRENCY,
    REMINDER_PACING_SECONDS,
)
from ...models import Appointment, NotificationLog, Tenant
from ...services.notification_channels import NotificationChannel, SendResult
from ...shared.tenant_settings import ResolvedSettings, load_all_settings
from ...shared.validators import local_now, normalize_phone
from ..appointments.lifecycle import ACTIVE_STATUSES
from .messages import DueReminder, render_sms_message, render_whatsapp_message

logger = logging.getLogger(__name__)

MESSAGE_TYPE = "appointment_reminder"


def build_buckets(settings: Sequence[ResolvedSettings]) -> dict[int, list[int]]:
    """Group tenant ids by reminder offset"""
    buckets: dict[int, list[int]] = defaultdict(list)
    for tenant_settings in settings:
        if tenant_settings.reminder_minutes < 0:
            logger.warning(
                f"Tenant {tenant_settings.tenant_id} has negative reminder offset "
                f"{tenant_settings.reminder_minutes}, skipping"
            )
            continue
        buckets[tenant_settings.reminder_minutes].append(tenant_settings.tenant_id)
    return dict(buckets)


def target_instant(now: datetime, offset_minutes: int) -> datetime:
    """Wall-clock instant an appointment must start at to be due now"""
    return now.replace(second=0, microsecond=0) + timedelta(minutes=offset_minutes)


def _minute_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


async def send_with_timeout(
    channel: NotificationChannel, recipient: str, message: str, timeout: float
) -> SendResult:
    """Send over one channel; timeouts and provider errors become a failed SendResult"""
    try:
        return await asyncio.wait_for(channel.send(recipient, message), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"{channel.name} send timed out after {timeout}s for {recipient}")
        return SendResult(False, error="Timed out")
    except Exception as e:
        logger.error(f"{channel.name} send failed for {recipient}: {str(e)}")
        return SendResult(False, error=str(e))


def record_attempt(
    db: Session,
    tenant_id: int,
    channel: NotificationChannel,
    recipient: str,
    body: str,
    message_type: str,
    result: SendResult,
    appointment_id: Optional[int] = None,
) -> None:
    """Write one NotificationLog row; a lost log row never changes the delivery outcome"""
    try:
        db.add(
            NotificationLog(
                tenant_id=tenant_id,
                appointment_id=appointment_id,
                channel=channel.name,
                recipient=recipient,
                message_body=body,
                message_type=message_type,
                status="sent" if result.success else "failed",
                provider_message_id=result.provider_message_id,
                error_message=result.error,
            )
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to log {channel.name} {message_type} to {recipient}: {e}")


class ReminderDispatcher:
    """Finds due appointments and delivers their reminders exactly once"""

    def __init__(
        self,
        db: Session,
        channels: Sequence[NotificationChannel],
        max_concurrency: int = REMINDER_MAX_CONCURRENCY,
        pacing_seconds: float = REMINDER_PACING_SECONDS,
        catchup_minutes: int = REMINDER_CATCHUP_MINUTES,
        send_timeout: float = NOTIFICATION_TIMEOUT_SECONDS,
    ):
        self.db = db
        self.channels = list(channels)
        self.max_concurrency = max(1, max_concurrency)
        self.pacing_seconds = pacing_seconds
        self.catchup_minutes = max(0, catchup_minutes)
        self.send_timeout = send_timeout

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def _target_filter(self, target: datetime):
        if not self.catchup_minutes:
            return and_(Appointment.date == target.date(), Appointment.time == _minute_of_day(target))

        # (target - window, target], possibly spanning midnight
        window_start = target - timedelta(minutes=self.catchup_minutes)
        if window_start.date() == target.date():
            return and_(
                Appointment.date == target.date(),
                Appointment.time > _minute_of_day(window_start),
                Appointment.time <= _minute_of_day(target),
            )
        return or_(
            and_(
                Appointment.date == window_start.date(),
                Appointment.time > _minute_of_day(window_start),
            ),
            and_(
                Appointment.date == target.date(),
                Appointment.time <= _minute_of_day(target),
            ),
        )

    def find_due(self, offset_minutes: int, tenant_ids: list[int], now: datetime) -> list[DueReminder]:
        """Unsent, still active appointments of these tenants due for this offset"""
        target = target_instant(now, offset_minutes)
        rows = (
            self.db.query(Appointment, Tenant)
            .join(Tenant, Tenant.id == Appointment.tenant_id)
            .filter(
                Appointment.tenant_id.in_(tenant_ids),
                Appointment.status.in_(ACTIVE_STATUSES),
                Appointment.reminder_sent.is_(False),
                self._target_filter(target),
            )
            .order_by(Appointment.date, Appointment.time, Appointment.id)
            .all()
        )
        return [
            DueReminder(
                appointment_id=appointment.id,
                tenant_id=appointment.tenant_id,
                offset_minutes=offset_minutes,
                day=appointment.date,
                time=appointment.time,
                customer_name=appointment.customer_name,
                customer_phone=appointment.customer_phone,
                service_name=appointment.service_name,
                staff_name=appointment.staff_name,
                business_name=tenant.name,
                business_phone=tenant.phone,
                business_address=tenant.address,
            )
            for appointment, tenant in rows
        ]

    # ------------------------------------------------------------------
    # Claiming
    # ------------------------------------------------------------------

    def claim(self, appointment_id: int, now: datetime) -> bool:
        """Mark the reminder as sent unless another run already did"""
        try:
            result = self.db.execute(
                update(Appointment)
                .where(Appointment.id == appointment_id, Appointment.reminder_sent.is_(False))
                .values(reminder_sent=True, reminder_sent_at=now)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return result.rowcount == 1

    def release(self, appointment_id: int) -> None:
        """Give a claimed reminder back so a later run can retry it"""
        try:
            self.db.execute(
                update(Appointment)
                .where(Appointment.id == appointment_id)
                .values(reminder_sent=False, reminder_sent_at=None)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def _send(self, channel: NotificationChannel, recipient: str, message: str) -> SendResult:
        return await send_with_timeout(channel, recipient, message, self.send_timeout)

    def _log_attempt(
        self, reminder: DueReminder, channel: NotificationChannel, recipient: str, body: str, result: SendResult
    ) -> None:
        record_attempt(
            self.db,
            reminder.tenant_id,
            channel,
            recipient,
            body,
            MESSAGE_TYPE,
            result,
            appointment_id=reminder.appointment_id,
        )

    async def deliver(self, reminder: DueReminder) -> bool:
        """Send over every channel; True when at least one acknowledged"""
        try:
            recipient = normalize_phone(reminder.customer_phone)
        except ValueError as e:
            logger.warning(f"Appointment {reminder.appointment_id} has unusable phone: {e}")
            recipient = None
        if not recipient:
            return False

        bodies = {
            "whatsapp": render_whatsapp_message(reminder),
            "sms": render_sms_message(reminder),
        }

        delivered = False
        for index, channel in enumerate(self.channels):
            if index and self.pacing_seconds:
                await asyncio.sleep(self.pacing_seconds)
            body = bodies.get(channel.name, bodies["sms"])
            result = await self._send(channel, recipient, body)
            self._log_attempt(reminder, channel, recipient, body, result)
            delivered = delivered or result.success
        return delivered

    async def _process(self, reminder: DueReminder, now: datetime, semaphore: asyncio.Semaphore) -> str:
        async with semaphore:
            try:
                claimed = self.claim(reminder.appointment_id, now)
            except Exception as e:
                logger.error(f"Could not claim reminder for appointment {reminder.appointment_id}: {e}")
                return "failed"
            if not claimed:
                logger.debug(f"Reminder for appointment {reminder.appointment_id} already claimed")
                return "skipped"

            try:
                delivered = await self.deliver(reminder)
            except Exception as e:
                logger.error(f"Error sending reminder for appointment {reminder.appointment_id}: {e}")
                delivered = False

            if self.pacing_seconds:
                await asyncio.sleep(self.pacing_seconds)

            if delivered:
                logger.info(f"Reminder sent for appointment {reminder.appointment_id}")
                return "succeeded"

            try:
                self.release(reminder.appointment_id)
                logger.warning(
                    f"All channels failed for appointment {reminder.appointment_id}, claim released"
                )
            except Exception as e:
                logger.error(f"Could not release reminder for appointment {reminder.appointment_id}: {e}")
            return "failed"

    async def run(self, now: Optional[datetime] = None) -> dict:
        """
        Run one reminder batch.

        Returns:
            dict: {matched, succeeded, failed, skipped}
        """
        now = (now or local_now()).replace(second=0, microsecond=0)
        summary = {"matched": 0, "succeeded": 0, "failed": 0, "skipped": 0}

        buckets = build_buckets(load_all_settings(self.db))
        due: list[DueReminder] = []
        for offset_minutes, tenant_ids in sorted(buckets.items()):
            found = self.find_due(offset_minutes, tenant_ids, now)
            if found:
                logger.info(
                    f"Offset {offset_minutes}m: {len(found)} appointment(s) due "
                    f"across {len(tenant_ids)} tenant(s)"
                )
            due.extend(found)

        summary["matched"] = len(due)
        if not due:
            logger.debug(f"No reminders due at {now:%Y-%m-%d %H:%M}")
            return summary

        semaphore = asyncio.Semaphore(self.max_concurrency)
        outcomes = await asyncio.gather(*(self._process(r, now, semaphore) for r in due))
        for outcome in outcomes:
            summary[outcome] += 1

        logger.info(f"Reminder run at {now:%Y-%m-%d %H:%M} complete: {summary}")
        return summary
