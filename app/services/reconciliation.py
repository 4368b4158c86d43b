"""
Reconciliation Service - applies verified Paystack outcomes to payment records.

The decision of what to do with a verified transaction is a pure function
(decide_reconciliation). The only write that changes a payment's status is a
conditional UPDATE guarded on status = PENDING, so concurrent deliveries of
the same event across processes apply the paid side effects at most once.
"""

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.fsm.machine import can_transition, ensure_transition
from app.fsm.states import PaymentStatus
from app.models.ledger import RentLedgerEntry
from app.models.lease import Lease
from app.models.payment import Payment
from app.models.property import Property, Unit
from app.models.user import User
from app.services.paystack_client import VerifyResult, from_minor_units, to_minor_units

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    """Result of reconciling one verified transaction."""

    APPLIED = "applied"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    # Gateway amount differs from what the record expects
    AMOUNT_MISMATCH = "amount_mismatch"
    CURRENCY_MISMATCH = "currency_mismatch"
    # Verification did not report success
    REJECTED = "rejected"
    # Record already FAILED/EXPIRED
    STALE = "stale"
    FAILED = "failed"
    NOTED = "noted"
    IGNORED = "ignored"


def _same_currency(expected: Optional[str], actual: Optional[str]) -> bool:
    if not expected or not actual:
        return True
    return expected.upper() == actual.upper()


def decide_reconciliation(
    payment: Optional[Payment],
    verification: VerifyResult,
) -> ReconcileOutcome:
    """Decide how a verified transaction applies to its payment record."""
    if payment is None:
        return ReconcileOutcome.NOT_FOUND

    status = PaymentStatus(payment.status)
    if status is PaymentStatus.PAID:
        return ReconcileOutcome.DUPLICATE
    if status.is_terminal:
        return ReconcileOutcome.STALE

    if not verification.is_success:
        return ReconcileOutcome.REJECTED

    if not _same_currency(payment.currency, verification.currency):
        return ReconcileOutcome.CURRENCY_MISMATCH

    if verification.amount != to_minor_units(payment.total_due):
        return ReconcileOutcome.AMOUNT_MISMATCH

    return ReconcileOutcome.APPLIED


class ReconciliationService:
    """Moves payment records out of PENDING based on verified gateway data."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_reference(self, reference: str) -> Optional[Payment]:
        result = await self.db.execute(
            select(Payment).where(Payment.reference == reference)
        )
        return result.scalar_one_or_none()

    async def reconcile(self, reference: str, verification: VerifyResult) -> ReconcileOutcome:
        """
        Apply a verified transaction to the payment holding this reference.

        Unknown references are discarded; nothing is created from gateway data.
        """
        payment = await self.find_by_reference(reference)
        outcome = decide_reconciliation(payment, verification)

        if outcome is ReconcileOutcome.NOT_FOUND:
            logger.warning(f"Payment not found for reference: {reference}", extra={"reference": reference})
            return outcome

        if outcome is ReconcileOutcome.DUPLICATE:
            logger.info(f"Payment {payment.id} already marked as PAID", extra={"reference": reference})
            return outcome

        if outcome is ReconcileOutcome.STALE:
            if verification.is_success:
                await self._alert_late_success(payment, reference)
            else:
                logger.info(
                    f"Ignoring {verification.status.value} verification for {payment.status} payment {payment.id}",
                    extra={"reference": reference},
                )
            return outcome

        if outcome is ReconcileOutcome.REJECTED:
            logger.warning(
                f"Verification for {reference} returned {verification.status.value}, payment {payment.id} left PENDING",
                extra={"reference": reference},
            )
            payment.append_note(f"Paystack verification returned {verification.status.value}: {reference}")
            await self.db.flush()
            return outcome

        if outcome is ReconcileOutcome.CURRENCY_MISMATCH:
            logger.error(
                f"Currency mismatch for payment {payment.id}: expected {payment.currency}, got {verification.currency}",
                extra={"reference": reference},
            )
            payment.append_note(
                f"ALERT: Paystack currency mismatch (expected {payment.currency}, got {verification.currency})"
            )
            await self.db.flush()
            return outcome

        if outcome is ReconcileOutcome.AMOUNT_MISMATCH:
            expected = to_minor_units(payment.total_due)
            logger.error(
                f"Amount mismatch for payment {payment.id}: expected {expected}, got {verification.amount}",
                extra={"reference": reference},
            )
            payment.append_note(
                f"ALERT: Paystack amount mismatch (expected {expected}, got {verification.amount})"
            )
            await self.db.flush()
            return outcome

        paid_at = verification.paid_at or datetime.now(timezone.utc)
        applied = await self._transition(
            payment,
            PaymentStatus.PAID,
            paid_date=paid_at,
            payment_method="Paystack",
        )
        if not applied:
            # Lost the conditional update; find out to what
            await self.db.refresh(payment)
            if payment.is_paid:
                logger.info(f"Payment {payment.id} was marked PAID concurrently", extra={"reference": reference})
                return ReconcileOutcome.DUPLICATE
            await self._alert_late_success(payment, reference)
            return ReconcileOutcome.STALE

        await self.db.refresh(payment)
        payment.append_note(f"Paystack payment confirmed: {reference}")

        currency = (
            payment.currency
            or verification.currency
            or await self._landlord_currency(payment.lease_id)
        )
        self.db.add(
            RentLedgerEntry(
                payment_id=payment.id,
                lease_id=payment.lease_id,
                amount=from_minor_units(verification.amount),
                currency=currency.upper(),
                reference=reference,
                channel=verification.channel,
            )
        )
        await self.db.flush()

        logger.info(f"Payment {payment.id} marked as PAID", extra={"reference": reference, "payment_id": payment.id})
        return ReconcileOutcome.APPLIED

    async def mark_failed(self, reference: str, reason: Optional[str] = None) -> ReconcileOutcome:
        """Move a PENDING payment to FAILED once the gateway confirms failure."""
        payment = await self.find_by_reference(reference)
        if payment is None:
            logger.warning(f"Payment not found for reference: {reference}", extra={"reference": reference})
            return ReconcileOutcome.NOT_FOUND

        if not can_transition(PaymentStatus(payment.status), PaymentStatus.FAILED) or not await self._transition(
            payment, PaymentStatus.FAILED
        ):
            await self.db.refresh(payment)
            logger.info(f"Payment {payment.id} is {payment.status}, not marking FAILED", extra={"reference": reference})
            return ReconcileOutcome.STALE

        await self.db.refresh(payment)
        payment.append_note(f"Paystack payment failed: {reason or 'Unknown error'}")
        await self.db.flush()
        logger.info(f"Payment {payment.id} failed: {reason}", extra={"reference": reference})
        return ReconcileOutcome.FAILED

    async def add_note(self, reference: str, line: str) -> ReconcileOutcome:
        """Record a gateway event on the payment without changing status."""
        payment = await self.find_by_reference(reference)
        if payment is None:
            logger.warning(f"Payment not found for reference: {reference}", extra={"reference": reference})
            return ReconcileOutcome.NOT_FOUND

        payment.append_note(line)
        await self.db.flush()
        return ReconcileOutcome.NOTED

    async def expire_stale(self, cutoff: datetime) -> int:
        """Expire PENDING payments whose checkout was initiated before cutoff."""
        # Bulk update: the source state is the WHERE clause, not a loaded row
        ensure_transition(PaymentStatus.PENDING, PaymentStatus.EXPIRED)
        result = await self.db.execute(
            update(Payment)
            .where(Payment.status == PaymentStatus.PENDING.value)
            .where(Payment.initiated_at.is_not(None))
            .where(Payment.initiated_at < cutoff)
            .values(status=PaymentStatus.EXPIRED.value, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0
        if count:
            logger.info(f"Expired {count} stale pending payment(s)")
        return count

    async def _transition(self, payment: Payment, target: PaymentStatus, **values) -> bool:
        """
        Conditional PENDING -> target update. True if this call applied it.

        Raises InvalidTransition if the loaded status cannot move to target;
        a loaded PENDING that another process already moved matches no row.
        """
        ensure_transition(PaymentStatus(payment.status), target)
        result = await self.db.execute(
            update(Payment)
            .where(Payment.id == payment.id)
            .where(Payment.status == PaymentStatus.PENDING.value)
            .values(status=target.value, updated_at=datetime.now(timezone.utc), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _alert_late_success(self, payment: Payment, reference: str) -> None:
        """Tenant was charged but the payment already left PENDING."""
        logger.error(
            f"Paystack success for {payment.status} payment {payment.id}",
            extra={"reference": reference, "payment_id": payment.id},
        )
        payment.append_note(f"ALERT: Paystack success for {payment.status} payment ({reference})")
        await self.db.flush()

    async def _landlord_currency(self, lease_id: uuid.UUID) -> str:
        result = await self.db.execute(
            select(User.currency)
            .join(Property, Property.user_id == User.id)
            .join(Unit, Unit.property_id == Property.id)
            .join(Lease, Lease.unit_id == Unit.id)
            .where(Lease.id == lease_id)
        )
        return result.scalar_one_or_none() or "NGN"
