"""
Payment state machine - strict transitions for payment records.
"""

import logging
from typing import Dict, FrozenSet

from app.fsm.states import PaymentStatus

logger = logging.getLogger(__name__)


class InvalidTransition(Exception):
    """Raised when a payment status change is not allowed."""

    def __init__(self, current: PaymentStatus, target: PaymentStatus):
        super().__init__(f"Cannot move payment from {current.value} to {target.value}")
        self.current = current
        self.target = target


# PAID, FAILED and EXPIRED are terminal
PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset(
        {PaymentStatus.PAID, PaymentStatus.FAILED, PaymentStatus.EXPIRED}
    ),
    PaymentStatus.PAID: frozenset(),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.EXPIRED: frozenset(),
}


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    """Check whether a payment may move from current to target."""
    return target in PAYMENT_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    """Raise InvalidTransition if the move is not allowed."""
    if not can_transition(current, target):
        logger.warning(f"Rejected payment transition {current.value} -> {target.value}")
        raise InvalidTransition(current, target)
