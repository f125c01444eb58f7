"""
Slot generation.

Produces the candidate start times of a working day at the tenant interval and
marks each one available or not, considering:
- slots already in the past
- overlap with existing (non-cancelled) appointments
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Tuple

from ...shared.errors import ValidationFailed
from ...shared.validators import format_minutes
from .working_hours import EffectiveHours


@dataclass(frozen=True)
class Slot:
    time: int  # minute of day
    available: bool

    @property
    def label(self) -> str:
        return format_minutes(self.time)


def intervals_overlap(start: int, end: int, other_start: int, other_end: int) -> bool:
    """Half-open interval overlap: [start, end) against [other_start, other_end)"""
    return start < other_end and end > other_start


def slot_instant(day: date, minute_of_day: int) -> datetime:
    return datetime.combine(day, time()) + timedelta(minutes=minute_of_day)


def generate_slots(
    day: date,
    hours: EffectiveHours,
    duration: int,
    interval: int,
    booked: Iterable[Tuple[int, int]],
    now: datetime,
) -> List[Slot]:
    """
    Generate the slot grid for one staff member and day.

    Args:
        day: calendar date of the slots
        hours: effective working hours for that date
        duration: length of the service being booked, in minutes
        interval: step between candidate start times, in minutes
        booked: (start_minute, duration) of every non-cancelled appointment
        now: current local wall-clock time

    Returns:
        Slots from the opening minute up to (not including) the closing minute.
        A last slot that runs past closing time is still listed.
    """
    if interval <= 0:
        raise ValidationFailed("Appointment interval must be a positive number of minutes")
    if duration <= 0:
        raise ValidationFailed("Service duration must be a positive number of minutes")

    if hours.closed:
        return []

    booked_intervals = [(start, start + length) for start, length in booked]
    slots = []

    candidate = hours.start_minute
    while candidate < hours.end_minute:
        if slot_instant(day, candidate) < now:
            available = False
        else:
            end = candidate + duration
            available = not any(
                intervals_overlap(candidate, end, apt_start, apt_end)
                for apt_start, apt_end in booked_intervals
            )
        slots.append(Slot(time=candidate, available=available))
        candidate += interval

    return slots
