"""
Paystack Webhook Handler.
Verifies signatures and reconciles charge events.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from app.api.deps import get_payment_service, get_webhook_guard, get_webhook_verifier
from app.services.payment_service import PaymentService
from app.services.paystack_client import (
    PaystackAPIError,
    PaystackConfigError,
    PaystackWebhookEvent,
)
from app.services.paystack_signature import SIGNATURE_HEADER, WebhookVerifier
from app.services.webhook_guard import WebhookDeliveryGuard

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/paystack")
async def paystack_webhook(
    request: Request,
    verifier: WebhookVerifier = Depends(get_webhook_verifier),
    guard: WebhookDeliveryGuard = Depends(get_webhook_guard),
    service: PaymentService = Depends(get_payment_service),
):
    """
    Handle Paystack webhook events.

    Key events:
    - charge.success: verified server-side, then the payment is marked PAID
    - charge.failed: payment marked FAILED once Paystack confirms it
    - charge.abandoned: noted on the payment, tenant may retry
    """
    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        logger.error("Webhook: Missing signature")
        raise HTTPException(status_code=401, detail="Missing signature")

    if not verifier.is_configured:
        logger.error("Webhook: PAYSTACK_SECRET_KEY not configured")
        raise HTTPException(status_code=500, detail="Server configuration error")

    # Signature covers the exact raw bytes
    body = await request.body()

    if not verifier.verify(body, signature):
        logger.error("Webhook: Invalid signature")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        event = PaystackWebhookEvent.model_validate_json(body)
    except ValidationError:
        logger.error("Webhook: Unparseable Paystack event")
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    delivery_key = guard.delivery_key(body)
    if not await guard.claim(delivery_key):
        logger.info(f"Duplicate webhook delivery ignored: {event.event} {event.data.reference}")
        return {"received": True, "status": "duplicate"}

    try:
        outcome = await service.handle_webhook_event(event)
    except PaystackConfigError as e:
        await guard.release(delivery_key)
        logger.error(f"Webhook: {e}")
        raise HTTPException(status_code=500, detail="Server configuration error")
    except PaystackAPIError as e:
        # Verify is safe to retry; let Paystack redeliver
        await guard.release(delivery_key)
        logger.error(f"Webhook: verification failed for {event.data.reference}: {e.message}")
        raise HTTPException(status_code=502, detail=e.message)
    except Exception as e:
        await service.db.rollback()
        logger.error(f"Error processing Paystack webhook: {e}", exc_info=True)
        # Return 200 to prevent excessive retries
        return {"received": True, "status": "error"}

    return {"received": True, "status": outcome.value}
