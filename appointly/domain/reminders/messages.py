"""Reminder message templates"""

from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from ...shared.validators import format_minutes, weekday_name


@dataclass(frozen=True)
class DueReminder:
    """Snapshot of an appointment that is due for a reminder"""

    appointment_id: int
    tenant_id: int
    offset_minutes: int
    day: date
    time: int
    customer_name: Optional[str]
    customer_phone: Optional[str]
    service_name: Optional[str]
    staff_name: Optional[str]
    business_name: Optional[str] = None
    business_phone: Optional[str] = None
    business_address: Optional[str] = None


def describe_offset(minutes: int) -> str:
    """120 -> "in 2 hours", 1440 -> "in 1 day", 45 -> "in 45 minutes" """
    if minutes <= 0:
        return "now"
    if minutes % 1440 == 0:
        days = minutes // 1440
        return f"in {days} day{'s' if days > 1 else ''}"
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"in {hours} hour{'s' if hours > 1 else ''}"
    return f"in {minutes} minutes"


def render_whatsapp_message(reminder: DueReminder) -> str:
    first_name = (reminder.customer_name or "").split(" ")[0] or "there"
    business = reminder.business_name or "Your appointment"

    lines = [
        f"Hello {first_name},",
        "",
        f"*Your appointment at {business} is {describe_offset(reminder.offset_minutes)}!*",
        "",
        f"📅 *Date:* {reminder.day.strftime('%d.%m.%Y')}",
        f"🕐 *Time:* {format_minutes(reminder.time)}",
    ]
    if reminder.service_name:
        lines.append(f"💇 *Service:* {reminder.service_name}")
    if reminder.staff_name:
        lines.append(f"👤 *Staff:* {reminder.staff_name}")
    if reminder.business_address:
        lines.append(f"📍 *Address:* {reminder.business_address}")

    lines += ["", "See you soon!"]
    if reminder.business_phone:
        lines.append(f"📞 {reminder.business_phone}")
    return "\n".join(lines)


def render_sms_message(reminder: DueReminder) -> str:
    business = reminder.business_name or "Your"
    message = (
        f"{business} appointment {describe_offset(reminder.offset_minutes)}. "
        f"Date: {reminder.day.strftime('%d.%m.%Y')}, Time: {format_minutes(reminder.time)}"
    )
    if reminder.service_name:
        message += f", Service: {reminder.service_name}"
    return message + ". See you soon!"


def render_staff_summary(
    first_name: Optional[str], day: date, appointments: Sequence, business_name: Optional[str]
) -> str:
    """Morning WhatsApp message listing a staff member's appointments for ``day``"""
    entries = []
    for index, appointment in enumerate(appointments, start=1):
        entry = [f"{index}. {format_minutes(appointment.time)} - {appointment.customer_name or 'Customer'}"]
        if appointment.service_name:
            entry.append(f"   🔹 {appointment.service_name}")
        if appointment.notes:
            entry.append(f"   💬 Note: {appointment.notes}")
        entries.append("\n".join(entry))

    count = len(appointments)
    lines = [
        f"🌅 Good morning {first_name or 'there'}!",
        "",
        f"📅 *{weekday_name(day).capitalize()}, {day.strftime('%d.%m.%Y')}*",
        "",
        f"You have {count} appointment{'s' if count != 1 else ''} today:",
        "",
        "\n\n".join(entries),
        "",
        "Have a great day! 💪",
        "",
        f"_{business_name or 'Appointments'}_",
    ]
    return "\n".join(lines)
