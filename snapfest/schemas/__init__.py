"""Pydantic schemas for API validation."""

from snapfest.schemas.booking import (
    AssignVendorRequest,
    BookingCancelRequest,
    BookingCreate,
    BookingResponse,
    CompletionResponse,
    OtpVerifyRequest,
    QuoteRequest,
    QuoteResponse,
    RefundRequest,
)
from snapfest.schemas.payment import (
    PaymentAttemptResponse,
    PaymentCreate,
    PaymentResponse,
    WebhookAck,
)

__all__ = [
    # Booking
    "QuoteRequest",
    "QuoteResponse",
    "BookingCreate",
    "BookingResponse",
    "AssignVendorRequest",
    "BookingCancelRequest",
    "OtpVerifyRequest",
    "RefundRequest",
    "CompletionResponse",
    # Payment
    "PaymentCreate",
    "PaymentAttemptResponse",
    "PaymentResponse",
    "WebhookAck",
]
