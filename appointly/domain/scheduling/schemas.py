"""Scheduling domain schemas - Pydantic models for availability"""

from pydantic import BaseModel


class SlotResponse(BaseModel):
    """One candidate start time"""

    time: str  # HH:MM
    available: bool
