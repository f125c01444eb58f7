"""Per-tenant settings resolved once per request or run"""

from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ..config import (
    DEFAULT_APPOINTMENT_INTERVAL,
    DEFAULT_BLACKLIST_THRESHOLD,
    DEFAULT_REMINDER_MINUTES,
)
from ..models import Tenant, TenantSettings


@dataclass(frozen=True)
class ResolvedSettings:
    tenant_id: int
    appointment_time_interval: int = DEFAULT_APPOINTMENT_INTERVAL
    reminder_minutes: int = DEFAULT_REMINDER_MINUTES
    blacklist_threshold: int = DEFAULT_BLACKLIST_THRESHOLD


def resolve_settings(tenant_id: int, row: Optional[TenantSettings]) -> ResolvedSettings:
    """Fill unset values with the system defaults"""
    if row is None:
        return ResolvedSettings(tenant_id=tenant_id)
    return ResolvedSettings(
        tenant_id=tenant_id,
        appointment_time_interval=row.appointment_time_interval or DEFAULT_APPOINTMENT_INTERVAL,
        reminder_minutes=(
            row.reminder_minutes if row.reminder_minutes is not None else DEFAULT_REMINDER_MINUTES
        ),
        blacklist_threshold=row.blacklist_threshold or DEFAULT_BLACKLIST_THRESHOLD,
    )


def load_settings(db: Session, tenant_id: int) -> ResolvedSettings:
    row = db.query(TenantSettings).filter(TenantSettings.tenant_id == tenant_id).first()
    return resolve_settings(tenant_id, row)


def load_all_settings(db: Session) -> Iterable[ResolvedSettings]:
    """Settings for every tenant, defaults included for tenants without a row"""
    rows = (
        db.query(Tenant.id, TenantSettings)
        .outerjoin(TenantSettings, TenantSettings.tenant_id == Tenant.id)
        .order_by(Tenant.id)
        .all()
    )
    return [resolve_settings(tenant_id, row) for tenant_id, row in rows]
