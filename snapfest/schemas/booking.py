"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from snapfest.domain.customization import CustomizationRequest


class VersionedCommand(BaseModel):
    """Mutation issued against a known booking version."""

    expected_version: int | None = Field(None, ge=1)


class CustomizationPayload(BaseModel):
    """Customization intent: option quantities and removed features, never prices."""

    selected_options: dict[str, Any] = Field(default_factory=dict)
    removed_feature_ids: list[str] = Field(default_factory=list)

    def to_request(self) -> CustomizationRequest:
        return CustomizationRequest(
            selected_options=dict(self.selected_options),
            removed_feature_ids=tuple(self.removed_feature_ids),
        )


class QuoteRequest(BaseModel):
    """Schema for pricing a customization without booking."""

    package_id: UUID | None = None
    beat_bloom_id: UUID | None = None
    guests: int = 1
    customization: CustomizationPayload = Field(default_factory=CustomizationPayload)


class BookingCreate(BaseModel):
    """Schema for checkout.

    Totals are not accepted; the server prices the booking.
    """

    user_id: UUID
    package_id: UUID | None = None
    beat_bloom_id: UUID | None = None
    event_date: date
    location: str = Field(..., min_length=1, max_length=500)
    guests: int = 1
    customization: CustomizationPayload = Field(default_factory=CustomizationPayload)
    customer_email: EmailStr | None = None
    customer_phone: str | None = Field(None, max_length=20)


class PriceBreakdownResponse(BaseModel):
    """Schema for a price breakdown (paise)."""

    model_config = ConfigDict(from_attributes=True)

    subtotal: int
    add_ons_total: int
    removed_discount: int
    travel_fee: int
    taxable_amount: int
    tax: int
    total: int


class QuoteResponse(BaseModel):
    """Schema for a quote."""

    guests: int
    breakdown: PriceBreakdownResponse
    deposit_amount: int
    customization: dict[str, Any]


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    package_id: UUID | None
    beat_bloom_id: UUID | None

    # Event
    event_date: date
    location: str
    guests: int
    customization: dict[str, Any]

    # Pricing
    subtotal: int
    add_ons_total: int
    removed_discount: int
    travel_fee: int
    tax: int
    total_amount: int
    deposit_amount: int

    # Payment
    amount_paid: int
    remaining_amount: int
    payment_status: str
    online_payment_done: bool

    # Vendor
    vendor_status: str
    assigned_vendor_id: UUID | None
    assigned_at: datetime | None

    # Completion
    otp_expires_at: datetime | None
    otp_verified: bool
    started_at: datetime | None
    completed_at: datetime | None

    # Cancellation & refund
    cancelled_by: str | None
    cancellation_reason: str | None
    cancelled_at: datetime | None
    refund_status: str
    refund_amount: int
    refund_failure_reason: str | None

    version: int
    created_at: datetime
    updated_at: datetime


class AssignVendorRequest(VersionedCommand):
    """Schema for assigning a vendor."""

    vendor_id: UUID


class BookingCancelRequest(VersionedCommand):
    """Schema for cancelling a booking."""

    reason: str = Field(..., min_length=1, max_length=1000)
    cancelled_by: str = Field(default="admin", pattern="^(customer|vendor|admin)$")


class OtpVerifyRequest(VersionedCommand):
    """Schema for submitting a completion code."""

    code: str = Field(..., pattern=r"^\d{6}$")


class RefundRequest(VersionedCommand):
    """Schema for refunding a cancelled booking."""

    reason: str = Field(..., min_length=1, max_length=1000)
    amount: int | None = None


class CompletionResponse(BaseModel):
    """Schema for a completion request outcome."""

    booking: BookingResponse
    otp_required: bool
