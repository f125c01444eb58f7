"""Reminder router - endpoints for the external scheduler"""

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...config import CRON_SECRET
from ...database import get_db
from ...services.notification_channels import build_default_channels
from .dispatcher import ReminderDispatcher
from .staff_summary import StaffSummaryDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reminders", tags=["Reminders"])

security = HTTPBearer(auto_error=False)


class ReminderRunResult(BaseModel):
    matched: int
    succeeded: int
    failed: int
    skipped: int


class StaffSummaryResult(BaseModel):
    total: int
    sent: int
    failed: int
    skipped: int


def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    if not CRON_SECRET:
        logger.error("CRON_SECRET is not configured; refusing cron request")
        raise HTTPException(status_code=503, detail="Cron endpoints are not configured")
    if not credentials or not secrets.compare_digest(credentials.credentials, CRON_SECRET):
        logger.warning("Cron request rejected: invalid cron secret")
        raise HTTPException(status_code=401, detail="Unauthorized")


def get_reminder_dispatcher(request: Request, db: Session = Depends(get_db)) -> ReminderDispatcher:
    """Dependency injection for ReminderDispatcher"""
    channels = getattr(request.app.state, "notification_channels", None)
    return ReminderDispatcher(db, channels if channels is not None else build_default_channels())


@router.post("/run", response_model=ReminderRunResult, dependencies=[Depends(verify_cron_secret)])
async def run_reminders(dispatcher: ReminderDispatcher = Depends(get_reminder_dispatcher)):
    """Send every reminder due right now"""
    logger.info("Reminder run triggered over HTTP")
    return ReminderRunResult(**await dispatcher.run())


def get_staff_summary_dispatcher(
    request: Request, db: Session = Depends(get_db)
) -> StaffSummaryDispatcher:
    """Dependency injection for StaffSummaryDispatcher"""
    channels = getattr(request.app.state, "notification_channels", None)
    return StaffSummaryDispatcher(db, channels if channels is not None else build_default_channels())


@router.post(
    "/staff-summary", response_model=StaffSummaryResult, dependencies=[Depends(verify_cron_secret)]
)
async def run_staff_summary(
    dispatcher: StaffSummaryDispatcher = Depends(get_staff_summary_dispatcher),
):
    """Send every active staff member today's appointment list"""
    logger.info("Daily staff summary triggered over HTTP")
    return StaffSummaryResult(**await dispatcher.run())
