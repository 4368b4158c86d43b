"""Payment model - rent and bill payments collected through Paystack."""

import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, DateTime, Date, ForeignKey, Numeric, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.fsm.states import PaymentStatus, PaymentType
from app.models.lease import Lease
from app.models.user import utcnow


class Payment(Base):
    """
    Payment record for a lease.

    Created PENDING when a landlord requests payment. Only the
    reconciliation service moves it to PAID/FAILED/EXPIRED, always with a
    conditional update guarded on status = PENDING.
    """

    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    lease_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("leases.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    late_fee: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0"),
        nullable=False,
    )

    # ISO 4217, the landlord's currency when the checkout was opened
    currency: Mapped[Optional[str]] = mapped_column(
        String(3),
        nullable=True,
    )

    payment_type: Mapped[str] = mapped_column(
        String(30),
        default=PaymentType.RENT.value,
        nullable=False,
    )

    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    paid_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
        nullable=False,
        index=True,
    )

    payment_method: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )

    # Paystack transaction reference (unique per attempt)
    reference: Mapped[Optional[str]] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
    )

    # Paystack hosted checkout page
    checkout_url: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
    )

    initiated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    lease: Mapped[Lease] = relationship(lazy="raise")

    def __repr__(self) -> str:
        return f"<Payment {self.id} {self.status}>"

    @property
    def total_due(self) -> Decimal:
        """Amount the tenant is charged (amount + late fee)."""
        return Decimal(self.amount) + Decimal(self.late_fee or 0)

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID.value

    def append_note(self, line: str) -> None:
        self.notes = f"{self.notes or ''}\n{line}".strip()
