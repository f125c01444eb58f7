"""Scheduling router - FastAPI endpoints for availability"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Identity, get_current_identity
from ...database import get_db
from .schemas import SlotResponse
from .service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability", tags=["Availability"])


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db)


@router.get("", response_model=list[SlotResponse])
async def get_availability(
    staff_id: int = Query(..., alias="staffId"),
    day: date = Query(..., alias="date"),
    service_id: Optional[int] = Query(None, alias="serviceId"),
    identity: Identity = Depends(get_current_identity),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Bookable start times for a staff member on a date (empty when closed)"""
    slots = service.get_availability(identity.tenant_id, staff_id, day, service_id)
    return [SlotResponse(time=slot.label, available=slot.available) for slot in slots]
