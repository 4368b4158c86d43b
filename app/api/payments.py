"""
Landlord Payment Endpoints.
Paystack payment requests and payment status for leases the caller owns.
"""

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from app.api.deps import Principal, get_landlord, get_payment_service, to_http_exception
from app.fsm.states import PaymentType
from app.services.payment_service import PaymentService, PaymentServiceError
from app.services.paystack_client import PaystackError

router = APIRouter()
logger = logging.getLogger(__name__)


class InitializePaymentRequest(BaseModel):
    """Request body for a landlord payment request."""
    lease_id: uuid.UUID
    amount: Decimal = Field(gt=0)
    due_date: date
    payment_type: PaymentType = PaymentType.RENT
    notes: Optional[str] = None


class PaymentOut(BaseModel):
    """Payment as returned to API clients."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    lease_id: uuid.UUID
    amount: Decimal
    late_fee: Decimal
    payment_type: str
    due_date: date
    paid_date: Optional[datetime] = None
    status: str
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None


@router.post("/paystack/initialize", status_code=201)
async def initialize_payment(
    request: InitializePaymentRequest,
    landlord: Principal = Depends(get_landlord),
    service: PaymentService = Depends(get_payment_service),
):
    """
    Create a PENDING payment for a lease and open a Paystack checkout.

    Returns the checkout URL plus a shareable payment link for the tenant.
    """
    try:
        checkout = await service.request_payment(
            landlord_id=landlord.user_id,
            lease_id=request.lease_id,
            amount=request.amount,
            due_date=request.due_date,
            payment_type=request.payment_type,
            notes=request.notes,
        )
    except (PaymentServiceError, PaystackError) as e:
        logger.error(f"Initialize payment error: {e}")
        raise to_http_exception(e)

    return {
        "payment_id": str(checkout.payment.id),
        "reference": checkout.reference,
        "authorization_url": checkout.authorization_url,
        "payment_link": service.payment_link(checkout.payment.id),
    }


@router.get("", response_model=List[PaymentOut])
async def list_payments(
    lease_id: uuid.UUID = Query(...),
    landlord: Principal = Depends(get_landlord),
    service: PaymentService = Depends(get_payment_service),
):
    """List a lease's payments, newest due date first."""
    try:
        return await service.list_lease_payments(landlord.user_id, lease_id)
    except PaymentServiceError as e:
        raise to_http_exception(e)


@router.get("/{payment_id}", response_model=PaymentOut)
async def get_payment(
    payment_id: uuid.UUID,
    landlord: Principal = Depends(get_landlord),
    service: PaymentService = Depends(get_payment_service),
):
    try:
        return await service.get_landlord_payment(landlord.user_id, payment_id)
    except PaymentServiceError as e:
        raise to_http_exception(e)
