"""
Working-hours resolution.

The effective hours of a staff member on a date come from an ordered chain of
providers (staff override, tenant default, system default). Every provider
answers with a tri-state day value; the first answer that is not UNSET wins.
"""

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Sequence

from ...config import DEFAULT_CLOSE_TIME, DEFAULT_OPEN_TIME
from ...shared.validators import parse_hhmm, weekday_name

logger = logging.getLogger(__name__)


class DayState(Enum):
    OPEN = "open"
    CLOSED = "closed"
    UNSET = "unset"


@dataclass(frozen=True)
class DayHours:
    state: DayState
    start: Optional[int] = None  # minute of day
    end: Optional[int] = None

    @classmethod
    def open(cls, start: int, end: int) -> "DayHours":
        return cls(DayState.OPEN, start, end)

    @classmethod
    def closed(cls) -> "DayHours":
        return cls(DayState.CLOSED)

    @classmethod
    def unset(cls) -> "DayHours":
        return cls(DayState.UNSET)


@dataclass(frozen=True)
class EffectiveHours:
    start_minute: int
    end_minute: int
    closed: bool = False


def parse_day_entry(entry, default_start: int, default_end: int) -> DayHours:
    """
    Interpret one weekday entry of a weekly schedule.

    ``{"closed": true}`` is CLOSED; an entry with start/end is OPEN, a missing
    bound taking the system default; a missing or malformed entry is UNSET.
    """
    if not entry or not isinstance(entry, dict):
        return DayHours.unset()

    if entry.get("closed"):
        return DayHours.closed()

    start_raw, end_raw = entry.get("start"), entry.get("end")
    if not start_raw and not end_raw:
        return DayHours.unset()

    try:
        start = parse_hhmm(start_raw) if start_raw else default_start
        end = parse_hhmm(end_raw) if end_raw else default_end
    except ValueError as e:
        logger.warning(f"Ignoring malformed working-hours entry {entry!r}: {e}")
        return DayHours.unset()

    return DayHours.open(start, end)


class ScheduleProvider:
    """Answers from a weekly schedule dict (staff or tenant)"""

    def __init__(self, name: str, schedule: Optional[dict]):
        self.name = name
        self.schedule = schedule or {}

    def day_hours(self, day: date) -> DayHours:
        default_start, default_end = parse_hhmm(DEFAULT_OPEN_TIME), parse_hhmm(DEFAULT_CLOSE_TIME)
        return parse_day_entry(self.schedule.get(weekday_name(day)), default_start, default_end)


class DefaultHoursProvider:
    name = "default"

    def day_hours(self, day: date) -> DayHours:
        return DayHours.open(parse_hhmm(DEFAULT_OPEN_TIME), parse_hhmm(DEFAULT_CLOSE_TIME))


def build_provider_chain(staff_hours: Optional[dict], tenant_hours: Optional[dict]) -> list:
    return [
        ScheduleProvider("staff", staff_hours),
        ScheduleProvider("tenant", tenant_hours),
        DefaultHoursProvider(),
    ]


def resolve_working_hours(day: date, providers: Sequence) -> EffectiveHours:
    """Return the first non-UNSET answer of the chain for the weekday of ``day``"""
    for provider in providers:
        hours = provider.day_hours(day)
        if hours.state is DayState.UNSET:
            continue

        logger.debug(f"Working hours for {day} resolved by {provider.name}: {hours}")
        if hours.state is DayState.CLOSED:
            return EffectiveHours(0, 0, closed=True)
        return EffectiveHours(hours.start, hours.end)

    # Chain without a default provider and nothing configured
    return EffectiveHours(parse_hhmm(DEFAULT_OPEN_TIME), parse_hhmm(DEFAULT_CLOSE_TIME))
