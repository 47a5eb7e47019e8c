"""Booking database model."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from snapfest.database import Base
from snapfest.domain.booking_state import RefundStatus, VendorStatus
from snapfest.domain.payment_state import PaymentStatus
from snapfest.models.catalog import JsonType
from snapfest.utils.datetime_normaliser import utcnow

if TYPE_CHECKING:
    from snapfest.models.payment import Payment


class Booking(Base):
    """Booking aggregate.

    Mutated only through the booking services; every UPDATE is conditional
    on ``version``.
    """

    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    # Exactly one of package / à-la-carte service
    package_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("packages.id"), index=True
    )
    beat_bloom_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("beat_blooms.id"), index=True
    )

    # Event
    event_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    location: Mapped[str] = mapped_column(Text, nullable=False)
    guests: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    customization: Mapped[dict] = mapped_column(JsonType, default=dict)

    # Customer contact for notifications
    customer_email: Mapped[str | None] = mapped_column(String(255))
    customer_phone: Mapped[str | None] = mapped_column(String(20))

    # Pricing frozen at checkout (in paise)
    subtotal: Mapped[int] = mapped_column(Integer, nullable=False)
    add_ons_total: Mapped[int] = mapped_column(Integer, default=0)
    removed_discount: Mapped[int] = mapped_column(Integer, default=0)
    travel_fee: Mapped[int] = mapped_column(Integer, default=0)
    tax: Mapped[int] = mapped_column(Integer, default=0)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    deposit_amount: Mapped[int] = mapped_column(Integer, nullable=False)

    # Payment
    amount_paid: Mapped[int] = mapped_column(Integer, default=0)
    payment_status: Mapped[str] = mapped_column(
        String(20), default=PaymentStatus.PENDING_PAYMENT.value, index=True
    )
    online_payment_done: Mapped[bool] = mapped_column(Boolean, default=False)

    # Vendor lifecycle
    vendor_status: Mapped[str] = mapped_column(
        String(20), default=VendorStatus.UNASSIGNED.value, index=True
    )
    assigned_vendor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("vendors.id"), index=True
    )
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Completion OTP (hash only)
    otp_hash: Mapped[str | None] = mapped_column(String(255))
    otp_issued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    otp_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    otp_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    otp_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Cancellation & refund
    cancelled_by: Mapped[str | None] = mapped_column(String(50))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    refund_status: Mapped[str] = mapped_column(
        String(20), default=RefundStatus.NONE.value
    )
    refund_amount: Mapped[int] = mapped_column(Integer, default=0)
    refund_failure_reason: Mapped[str | None] = mapped_column(Text)

    # Set while a charge or refund is outstanding at a gateway
    gateway_claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Optimistic concurrency counter
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Python-side so values stay loaded after flush
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    payments: Mapped[list["Payment"]] = relationship(
        "Payment", back_populates="booking", order_by="Payment.created_at"
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("guests >= 1 AND guests <= 1000", name="ck_booking_guests_range"),
        CheckConstraint(
            "(package_id IS NULL) <> (beat_bloom_id IS NULL)",
            name="ck_booking_single_item",
        ),
        CheckConstraint("amount_paid >= 0", name="ck_booking_amount_paid_non_negative"),
    )

    @property
    def remaining_amount(self) -> int:
        return max(self.total_amount - self.amount_paid, 0)

