"""Shared validation and time utilities"""

import re
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from ..config import BUSINESS_TIMEZONE, DEFAULT_COUNTRY_CODE

TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def parse_hhmm(value: str) -> int:
    """
    Convert an HH:MM string to minutes since midnight.

    Raises:
        ValueError: If the value is not a valid time of day
    """
    if not isinstance(value, str):
        raise ValueError("Time must be a string in HH:MM format")

    match = TIME_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time format: {value!r} (expected HH:MM)")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Time out of range: {value!r}")
    return hours * 60 + minutes


def format_minutes(minute_of_day: int) -> str:
    """Format minutes since midnight as HH:MM"""
    hours, minutes = divmod(minute_of_day, 60)
    return f"{hours:02d}:{minutes:02d}"


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def local_now() -> datetime:
    """Current wall-clock time in the business timezone, as a naive datetime"""
    return datetime.now(ZoneInfo(BUSINESS_TIMEZONE)).replace(tzinfo=None)


def normalize_phone(phone: Optional[str], country_code: str = DEFAULT_COUNTRY_CODE) -> Optional[str]:
    """
    Normalize a phone number to international digits without the plus sign.

    Local numbers ("0555 123 45 67", "5551234567") get the country code
    prepended; numbers that already carry it are kept.

    Raises:
        ValueError: If the number has too few digits
    """
    if not phone:
        return phone

    raw = phone.strip()
    digits = re.sub(r"\D", "", raw)

    if raw.startswith("+"):
        pass  # already international
    elif digits.startswith("00"):
        digits = digits[2:]
    else:
        digits = digits.lstrip("0")
        if not (digits.startswith(country_code) and len(digits) > 10):
            digits = country_code + digits

    if len(digits) < 10 or len(digits) > 15:
        raise ValueError("Phone number must contain between 10 and 15 digits")
    return digits


def to_e164(phone: Optional[str]) -> Optional[str]:
    """Normalize a phone number to E.164 (+<digits>)"""
    normalized = normalize_phone(phone)
    return f"+{normalized}" if normalized else normalized
