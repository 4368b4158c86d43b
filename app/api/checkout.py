"""
Checkout callback - where Paystack sends the tenant after the hosted page.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_payment_service, to_http_exception
from app.services.payment_service import PaymentService, PaymentServiceError
from app.services.paystack_client import PaystackError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/pay/{payment_id}/callback")
async def checkout_callback(
    payment_id: uuid.UUID,
    reference: Optional[str] = Query(None),
    trxref: Optional[str] = Query(None),
    service: PaymentService = Depends(get_payment_service),
):
    """
    Verify the transaction server-side and report the payment status.
    Paystack appends both ?trxref= and ?reference= to the callback URL.
    """
    try:
        result = await service.confirm_callback(payment_id, trxref or reference)
    except (PaymentServiceError, PaystackError) as e:
        logger.error(f"Checkout callback error for {payment_id}: {e}")
        raise to_http_exception(e)

    payment = result.payment
    return {
        "payment_id": str(payment.id),
        "status": payment.status,
        "paid": payment.is_paid,
        "gateway_status": result.gateway_status.value if result.gateway_status else None,
        "payment_link": service.payment_link(payment.id),
    }
