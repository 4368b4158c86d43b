"""
Shared FastAPI dependencies: caller identity, Paystack collaborators.
"""

import uuid
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import PaystackConfig, get_paystack_config, settings
from app.database import get_db
from app.fsm.states import UserRole
from app.services.payment_service import PaymentService, PaymentServiceError
from app.services.paystack_client import PaystackAPIError, PaystackClient, PaystackConfigError
from app.services.paystack_signature import WebhookVerifier
from app.services.webhook_guard import WebhookDeliveryGuard


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as forwarded by the auth layer."""

    user_id: uuid.UUID
    role: UserRole


async def get_principal(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> Principal:
    """
    Build the caller identity from the headers set by the session layer.
    Raises 401 if either header is missing or malformed.
    """
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    try:
        return Principal(user_id=uuid.UUID(x_user_id), role=UserRole(x_user_role.upper()))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


async def get_landlord(principal: Principal = Depends(get_principal)) -> Principal:
    if principal.role is not UserRole.LANDLORD:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return principal


async def get_tenant(principal: Principal = Depends(get_principal)) -> Principal:
    if principal.role is not UserRole.TENANT:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - Tenants only",
        )
    return principal


async def get_paystack_client(
    config: PaystackConfig = Depends(get_paystack_config),
) -> AsyncGenerator[PaystackClient, None]:
    """Per-request Paystack client; closes its HTTP pool afterwards."""
    async with PaystackClient(config) as client:
        yield client


def get_webhook_verifier(
    config: PaystackConfig = Depends(get_paystack_config),
) -> WebhookVerifier:
    return WebhookVerifier(config)


def get_webhook_guard(request: Request) -> WebhookDeliveryGuard:
    """App-wide guard; built on first use when the lifespan did not run."""
    guard = getattr(request.app.state, "webhook_guard", None)
    if guard is None:
        guard = WebhookDeliveryGuard.from_url(
            settings.redis_url, ttl_seconds=settings.webhook_dedup_ttl_seconds
        )
        request.app.state.webhook_guard = guard
    return guard


async def get_payment_service(
    db: AsyncSession = Depends(get_db),
    paystack: PaystackClient = Depends(get_paystack_client),
) -> PaymentService:
    return PaymentService(
        db,
        paystack,
        app_base_url=settings.app_base_url,
        verify_webhooks=settings.paystack_verify_webhooks,
    )


def to_http_exception(e: Exception) -> HTTPException:
    """Map service and gateway errors onto HTTP responses."""
    if isinstance(e, PaymentServiceError):
        return HTTPException(status_code=e.status_code, detail=e.message)
    if isinstance(e, PaystackConfigError):
        return HTTPException(status_code=500, detail="Server configuration error")
    if isinstance(e, PaystackAPIError):
        return HTTPException(status_code=502, detail=e.message)
    return HTTPException(status_code=500, detail="Something went wrong")
