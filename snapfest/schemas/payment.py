"""Payment-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from snapfest.schemas.booking import BookingResponse, VersionedCommand


class PaymentCreate(VersionedCommand):
    """Schema for a payment attempt.

    Without ``gateway_transaction_id`` the amount is charged through
    ``gateway``; with it, an already-confirmed transaction is recorded.
    """

    amount: int
    gateway: str | None = Field(None, pattern="^(stripe|manual)$")
    method: str = Field(default="online", pattern="^(online|cash)$")
    # Gateway-side payment method token (e.g. Stripe pm_...)
    payment_method: str | None = None
    gateway_transaction_id: str | None = Field(None, max_length=100)


class PaymentAttemptResponse(BaseModel):
    """Schema for a payment request outcome.

    ``pending`` charges are settled later by the gateway webhook; the
    client completes them (e.g. 3-D Secure) with ``client_secret``.
    """

    booking: BookingResponse
    pending: bool = False
    transaction_id: str | None = None
    client_secret: str | None = None


class PaymentResponse(BaseModel):
    """Schema for a payment ledger entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    amount: int
    currency: str
    method: str
    gateway: str | None
    gateway_transaction_id: str | None
    status: str
    failure_reason: str | None
    refund_of_id: UUID | None
    created_at: datetime


class WebhookAck(BaseModel):
    """Schema for webhook acknowledgement."""

    received: bool = True
    booking_id: UUID | None = None
    payment_status: str | None = None
