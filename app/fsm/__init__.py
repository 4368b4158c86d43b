"""FSM package for payment lifecycle management."""

from app.fsm.states import (
    PaymentStatus,
    PaymentType,
    LeaseStatus,
    UnitStatus,
    UserRole,
    PaystackTransactionStatus,
    PaystackEvent,
)
from app.fsm.machine import InvalidTransition, can_transition, ensure_transition

__all__ = [
    "PaymentStatus",
    "PaymentType",
    "LeaseStatus",
    "UnitStatus",
    "UserRole",
    "PaystackTransactionStatus",
    "PaystackEvent",
    "InvalidTransition",
    "can_transition",
    "ensure_transition",
]
