"""Payment ledger database model."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from snapfest.database import Base
from snapfest.domain.payment_state import LedgerStatus
from snapfest.models.catalog import JsonType
from snapfest.utils.datetime_normaliser import utcnow

if TYPE_CHECKING:
    from snapfest.models.booking import Booking


class Payment(Base):
    """Append-only payment ledger entry.

    Refunds are new rows with status REFUNDED pointing at the entry they
    reverse; existing rows are never updated or deleted.
    """

    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )

    # Amount
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # in paise
    currency: Mapped[str] = mapped_column(String(3), default="INR")

    # Method
    method: Mapped[str] = mapped_column(String(20), nullable=False)  # online, cash

    # Gateway
    gateway: Mapped[str | None] = mapped_column(String(30))  # stripe, manual
    gateway_transaction_id: Mapped[str | None] = mapped_column(String(100), index=True)
    gateway_response: Mapped[dict | None] = mapped_column(JsonType)

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default=LedgerStatus.PENDING.value
    )  # SUCCESS, PENDING, FAILED, REFUNDED
    failure_reason: Mapped[str | None] = mapped_column(Text)

    # Set on REFUNDED rows: the SUCCESS entry being reversed
    refund_of_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("payments.id")
    )

    # Python-side so entries within one transaction stay ordered
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="payments")

    # A transaction settles once; an earlier failed attempt on it may coexist
    __table_args__ = (
        UniqueConstraint("gateway_transaction_id", "status", name="uq_payments_transaction_status"),
    )

    @property
    def signed_amount(self) -> int:
        """Contribution of this entry to the booking's net amount paid."""
        if self.status == LedgerStatus.SUCCESS.value:
            return self.amount
        if self.status == LedgerStatus.REFUNDED.value:
            return -self.amount
        return 0
