"""
Caller identity.

Authentication (phone OTP, token issuance) lives outside this service. An
upstream gateway authenticates the caller and forwards the resolved context;
the default provider reads it from trusted headers. Deployments can install a
different provider on ``app.state.identity_provider``.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

USER_TYPES = {"owner", "staff", "customer"}


@dataclass(frozen=True)
class Identity:
    tenant_id: int
    user_type: str = "owner"
    staff_id: Optional[int] = None
    customer_id: Optional[int] = None

    @property
    def is_customer(self) -> bool:
        return self.user_type == "customer"


class IdentityProvider(Protocol):
    def resolve(self, request: Request) -> Optional[Identity]: ...


def _int_header(request: Request, name: str) -> Optional[int]:
    value = request.headers.get(name)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Invalid {name} header")


class HeaderIdentityProvider:
    """Reads X-Tenant-Id / X-User-Type / X-Staff-Id / X-Customer-Id"""

    def resolve(self, request: Request) -> Optional[Identity]:
        tenant_id = _int_header(request, "X-Tenant-Id")
        if tenant_id is None:
            return None

        user_type = request.headers.get("X-User-Type", "owner").lower()
        if user_type not in USER_TYPES:
            raise HTTPException(status_code=401, detail="Invalid X-User-Type header")

        identity = Identity(
            tenant_id=tenant_id,
            user_type=user_type,
            staff_id=_int_header(request, "X-Staff-Id"),
            customer_id=_int_header(request, "X-Customer-Id"),
        )
        if identity.is_customer and identity.customer_id is None:
            raise HTTPException(status_code=401, detail="Customer identity requires X-Customer-Id")
        return identity


default_identity_provider = HeaderIdentityProvider()


async def get_current_identity(request: Request) -> Identity:
    """FastAPI dependency resolving the authenticated caller"""
    provider = getattr(request.app.state, "identity_provider", None) or default_identity_provider
    identity = provider.resolve(request)
    if identity is None:
        logger.warning(f"Unauthenticated request to {request.url.path}")
        raise HTTPException(status_code=401, detail="Not authenticated")
    return identity
