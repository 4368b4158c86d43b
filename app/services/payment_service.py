"""
Payment Service - Paystack checkout, webhook handling and callback verification.
"""

import time
import uuid
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.fsm.states import (
    PaymentStatus,
    PaymentType,
    PaystackEvent,
    PaystackTransactionStatus,
)
from app.models.lease import Lease, Tenant
from app.models.payment import Payment
from app.models.property import Property, Unit
from app.services.paystack_client import (
    InitializeRequest,
    InitializeResult,
    PaystackClient,
    PaystackWebhookEvent,
    VerifyResult,
    to_minor_units,
)
from app.services.reconciliation import ReconcileOutcome, ReconciliationService

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "ORCA"

CHARGE_EVENTS = frozenset(
    e.value
    for e in (PaystackEvent.CHARGE_SUCCESS, PaystackEvent.CHARGE_FAILED, PaystackEvent.CHARGE_ABANDONED)
)


class PaymentServiceError(Exception):
    """Base error carrying the HTTP status the API should answer with."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(PaymentServiceError):
    status_code = 404


class ForbiddenError(PaymentServiceError):
    status_code = 403


class PaymentStateError(PaymentServiceError):
    status_code = 400


@dataclass
class CheckoutSession:
    """Checkout details returned to the landlord or tenant."""

    payment: Payment
    reference: str
    authorization_url: Optional[str]
    already_initiated: bool = False


@dataclass
class CallbackResult:
    """Outcome of verifying a checkout callback."""

    payment: Payment
    gateway_status: Optional[PaystackTransactionStatus]
    outcome: Optional[ReconcileOutcome]


def build_reference(payment_id: uuid.UUID) -> str:
    """Fresh reference for a tenant-initiated attempt."""
    return f"{REFERENCE_PREFIX}-{payment_id}-{int(time.time() * 1000)}"


class PaymentService:
    """Service for Paystack rent collection."""

    def __init__(
        self,
        db: AsyncSession,
        paystack: PaystackClient,
        app_base_url: str,
        verify_webhooks: bool = True,
    ):
        self.db = db
        self.paystack = paystack
        self.app_base_url = app_base_url.rstrip("/")
        self.verify_webhooks = verify_webhooks
        self.reconciler = ReconciliationService(db)

    def callback_url(self, payment_id: uuid.UUID) -> str:
        return f"{self.app_base_url}/pay/{payment_id}/callback"

    def payment_link(self, payment_id: uuid.UUID) -> str:
        return f"{self.app_base_url}/pay/{payment_id}"

    # --- Loading with ownership ---

    async def _load_lease(self, lease_id: uuid.UUID) -> Optional[Lease]:
        result = await self.db.execute(
            select(Lease)
            .options(
                joinedload(Lease.tenant),
                joinedload(Lease.unit).joinedload(Unit.property).joinedload(Property.user),
            )
            .where(Lease.id == lease_id)
        )
        return result.unique().scalar_one_or_none()

    async def _load_payment(self, payment_id: uuid.UUID) -> Optional[Payment]:
        result = await self.db.execute(
            select(Payment)
            .options(
                joinedload(Payment.lease).joinedload(Lease.tenant),
                joinedload(Payment.lease)
                .joinedload(Lease.unit)
                .joinedload(Unit.property)
                .joinedload(Property.user),
            )
            .where(Payment.id == payment_id)
        )
        return result.unique().scalar_one_or_none()

    async def get_landlord_lease(self, landlord_id: uuid.UUID, lease_id: uuid.UUID) -> Lease:
        lease = await self._load_lease(lease_id)
        if not lease:
            raise NotFoundError("Lease not found")
        if lease.unit.property.user_id != landlord_id:
            raise ForbiddenError("Unauthorized")
        return lease

    async def get_landlord_payment(self, landlord_id: uuid.UUID, payment_id: uuid.UUID) -> Payment:
        payment = await self._load_payment(payment_id)
        if not payment:
            raise NotFoundError("Payment not found")
        if payment.lease.unit.property.user_id != landlord_id:
            raise ForbiddenError("Unauthorized")
        return payment

    async def list_lease_payments(self, landlord_id: uuid.UUID, lease_id: uuid.UUID) -> List[Payment]:
        await self.get_landlord_lease(landlord_id, lease_id)
        result = await self.db.execute(
            select(Payment)
            .where(Payment.lease_id == lease_id)
            .order_by(Payment.due_date.desc())
        )
        return list(result.scalars().all())

    # --- Checkout ---

    async def request_payment(
        self,
        landlord_id: uuid.UUID,
        lease_id: uuid.UUID,
        amount: Decimal,
        due_date: date,
        payment_type: PaymentType = PaymentType.RENT,
        notes: Optional[str] = None,
    ) -> CheckoutSession:
        """
        Landlord-initiated checkout.

        Creates a PENDING payment and initializes a Paystack transaction
        whose reference is the payment id.
        """
        lease = await self.get_landlord_lease(landlord_id, lease_id)
        landlord = lease.unit.property.user

        payment = Payment(
            lease_id=lease.id,
            amount=amount,
            due_date=due_date,
            payment_type=payment_type.value,
            currency=landlord.currency,
            status=PaymentStatus.PENDING.value,
            payment_method="Paystack",
            notes=notes or None,
        )
        self.db.add(payment)
        await self.db.flush()

        result = await self._initialize(
            payment,
            email=lease.tenant.email,
            currency=landlord.currency,
            reference=str(payment.id),
            metadata={
                "payment_id": str(payment.id),
                "lease_id": str(lease.id),
                "tenant_id": str(lease.tenant.id),
                "property_id": str(lease.unit.property.id),
                "unit_id": str(lease.unit.id),
            },
        )
        return CheckoutSession(
            payment=payment,
            reference=result.reference,
            authorization_url=result.authorization_url,
        )

    async def initiate_tenant_payment(
        self,
        tenant_auth_id: uuid.UUID,
        payment_id: uuid.UUID,
    ) -> CheckoutSession:
        """Tenant-initiated checkout for an existing PENDING payment."""
        payment = await self._load_payment(payment_id)
        if not payment:
            raise NotFoundError("Payment not found")

        tenant = payment.lease.tenant
        if tenant.auth_user_id != tenant_auth_id:
            raise ForbiddenError("Unauthorized - Not your payment")

        if payment.is_paid:
            raise PaymentStateError("Payment has already been paid")
        if payment.status != PaymentStatus.PENDING.value:
            raise PaymentStateError(f"Payment is {payment.status.lower()}")

        if payment.reference and payment.checkout_url:
            return CheckoutSession(
                payment=payment,
                reference=payment.reference,
                authorization_url=payment.checkout_url,
                already_initiated=True,
            )

        landlord = payment.lease.unit.property.user
        result = await self._initialize(
            payment,
            email=tenant.email,
            currency=payment.currency or landlord.currency,
            reference=build_reference(payment.id),
            metadata={
                "payment_id": str(payment.id),
                "lease_id": str(payment.lease_id),
                "tenant_id": str(tenant.id),
            },
        )
        return CheckoutSession(
            payment=payment,
            reference=result.reference,
            authorization_url=result.authorization_url,
        )

    async def _initialize(
        self,
        payment: Payment,
        email: str,
        currency: str,
        reference: str,
        metadata: dict,
    ) -> InitializeResult:
        result = await self.paystack.initialize_transaction(
            InitializeRequest(
                email=email,
                amount=to_minor_units(payment.total_due),
                currency=currency,
                reference=reference,
                callback_url=self.callback_url(payment.id),
                metadata=metadata,
            )
        )
        payment.reference = result.reference
        payment.currency = currency
        payment.checkout_url = result.authorization_url
        payment.initiated_at = datetime.now(timezone.utc)
        await self.db.flush()
        logger.info(
            f"Checkout initialized for payment {payment.id}",
            extra={"reference": result.reference, "payment_id": payment.id},
        )
        return result

    # --- Webhook ---

    async def handle_webhook_event(self, event: PaystackWebhookEvent) -> ReconcileOutcome:
        """
        Apply an authenticated webhook event.

        The caller must have verified the signature. charge.success and
        charge.failed are re-checked against /transaction/verify before any
        status change when verify_webhooks is enabled.
        """
        reference = event.data.reference
        logger.info(f"Paystack webhook event: {event.event} {reference}", extra={"event": event.event, "reference": reference})

        if event.event in CHARGE_EVENTS and not reference:
            logger.warning(f"Webhook {event.event} without a reference ignored", extra={"event": event.event})
            return ReconcileOutcome.IGNORED

        if event.event == PaystackEvent.CHARGE_SUCCESS.value:
            verification = await self._verification_for(event)
            return await self.reconciler.reconcile(reference, verification)

        if event.event == PaystackEvent.CHARGE_FAILED.value:
            verification = await self._verification_for(event)
            if verification.status is PaystackTransactionStatus.FAILED:
                return await self.reconciler.mark_failed(
                    reference, event.data.message or event.data.gateway_response
                )
            return await self.reconciler.add_note(
                reference,
                f"Paystack payment failed: {event.data.message or 'Unknown error'}",
            )

        if event.event == PaystackEvent.CHARGE_ABANDONED.value:
            return await self.reconciler.add_note(reference, "Paystack payment abandoned")

        logger.info(f"Unhandled webhook event: {event.event}")
        return ReconcileOutcome.IGNORED

    async def _verification_for(self, event: PaystackWebhookEvent) -> VerifyResult:
        if self.verify_webhooks:
            return await self.paystack.verify_transaction(event.data.reference)
        # Signed event body stands in for the verify call
        return VerifyResult(
            status=event.data.status or "",
            reference=event.data.reference,
            amount=event.data.amount or 0,
            currency=event.data.currency,
            paid_at=event.data.paid_at,
            channel=event.data.channel,
            gateway_response=event.data.gateway_response,
            metadata=event.data.metadata,
        )

    # --- Callback ---

    async def confirm_callback(
        self,
        payment_id: uuid.UUID,
        reference: Optional[str],
    ) -> CallbackResult:
        """
        Verify the transaction a tenant was redirected back from.

        The reference must belong to this payment; status changes go through
        the same reconciliation path as webhooks.
        """
        payment = await self._load_payment(payment_id)
        if not payment:
            raise NotFoundError("Payment not found")

        if payment.is_paid:
            return CallbackResult(payment=payment, gateway_status=None, outcome=ReconcileOutcome.DUPLICATE)

        reference = reference or payment.reference
        if not reference:
            return CallbackResult(payment=payment, gateway_status=None, outcome=None)
        if reference != payment.reference:
            raise PaymentStateError("Reference does not match this payment")

        verification = await self.paystack.verify_transaction(reference)
        if verification.status is PaystackTransactionStatus.FAILED:
            outcome = await self.reconciler.mark_failed(reference, verification.gateway_response)
        elif verification.is_success:
            outcome = await self.reconciler.reconcile(reference, verification)
        else:
            outcome = None

        await self.db.refresh(payment)
        return CallbackResult(payment=payment, gateway_status=verification.status, outcome=outcome)
