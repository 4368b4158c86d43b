"""
Tenant Portal Payment Endpoints.
"""

import logging
import uuid

from fastapi import APIRouter, Depends

from app.api.deps import Principal, get_payment_service, get_tenant, to_http_exception
from app.services.payment_service import PaymentService, PaymentServiceError
from app.services.paystack_client import PaystackError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/payments/{payment_id}/initiate")
async def initiate_payment(
    payment_id: uuid.UUID,
    tenant: Principal = Depends(get_tenant),
    service: PaymentService = Depends(get_payment_service),
):
    """
    Start (or resume) Paystack checkout for one of the tenant's payments.
    A payment that already has a checkout returns the existing one.
    """
    try:
        checkout = await service.initiate_tenant_payment(tenant.user_id, payment_id)
    except (PaymentServiceError, PaystackError) as e:
        logger.error(f"Error initiating payment {payment_id}: {e}")
        raise to_http_exception(e)

    if checkout.already_initiated:
        return {
            "success": True,
            "reference": checkout.reference,
            "authorization_url": checkout.authorization_url,
            "message": "Payment already initiated",
        }

    return {
        "success": True,
        "reference": checkout.reference,
        "authorization_url": checkout.authorization_url,
        "message": "Payment initiated successfully",
    }
