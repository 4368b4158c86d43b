"""
State Definitions.
Payment, lease and unit lifecycle enums plus Paystack status values.
"""

from enum import Enum


class PaymentStatus(str, Enum):
    """
    Payment record lifecycle.
    PENDING is the only non-terminal state.
    """

    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


class PaymentType(str, Enum):
    """What a payment is for."""

    RENT = "RENT"
    ELECTRICITY = "ELECTRICITY"
    WATER = "WATER"
    GAS = "GAS"
    INTERNET = "INTERNET"
    MAINTENANCE = "MAINTENANCE"
    SECURITY_DEPOSIT = "SECURITY_DEPOSIT"
    LATE_FEE = "LATE_FEE"
    OTHER = "OTHER"

    @property
    def display_name(self) -> str:
        """Human readable label ("SECURITY_DEPOSIT" -> "Security Deposit")."""
        return self.value.replace("_", " ").title()


class LeaseStatus(str, Enum):
    """Lease lifecycle."""

    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    TERMINATED = "TERMINATED"


class UnitStatus(str, Enum):
    """Unit occupancy."""

    OCCUPIED = "OCCUPIED"
    VACANT = "VACANT"


class UserRole(str, Enum):
    """Caller role forwarded by the auth layer."""

    LANDLORD = "LANDLORD"
    TENANT = "TENANT"


class PaystackTransactionStatus(str, Enum):
    """Transaction status values returned by /transaction/verify."""

    SUCCESS = "success"
    FAILED = "failed"
    ABANDONED = "abandoned"
    ONGOING = "ongoing"
    PENDING = "pending"
    PROCESSING = "processing"
    QUEUED = "queued"
    REVERSED = "reversed"

    @classmethod
    def parse(cls, value: str) -> "PaystackTransactionStatus":
        """Parse a gateway status, mapping unknown values to PENDING."""
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.PENDING


class PaystackEvent(str, Enum):
    """Webhook event names handled by the service."""

    CHARGE_SUCCESS = "charge.success"
    CHARGE_FAILED = "charge.failed"
    CHARGE_ABANDONED = "charge.abandoned"
