"""Booking endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from snapfest.api.deps import (
    Actor,
    get_assignment_service,
    get_booking_service,
    get_completion_service,
    get_db,
    get_payment_service,
    get_refund_service,
)
from snapfest.core.exceptions import ValidationError
from snapfest.core.middleware import booking_limiter, otp_verify_limiter
from snapfest.domain.payment_state import PaymentMethod
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
    VersionedCommand,
)
from snapfest.schemas.payment import PaymentAttemptResponse, PaymentCreate, PaymentResponse
from snapfest.services.assignment_service import AssignmentService
from snapfest.services.booking_service import BookingService, get_booking_or_404
from snapfest.services.completion_service import CompletionService
from snapfest.services.payment_service import PaymentService
from snapfest.services.refund_service import RefundService

router = APIRouter()

Db = Annotated[AsyncSession, Depends(get_db)]
Bookings = Annotated[BookingService, Depends(get_booking_service)]
Payments = Annotated[PaymentService, Depends(get_payment_service)]


@router.post("/quote", response_model=QuoteResponse)
async def quote_booking(
    request: QuoteRequest,
    db: Db,
    bookings: Bookings,
) -> QuoteResponse:
    """Price a customization without creating a booking."""
    quote = await bookings.quote(
        db,
        package_id=request.package_id,
        beat_bloom_id=request.beat_bloom_id,
        guests=request.guests,
        customization=request.customization.to_request(),
    )
    return QuoteResponse(
        guests=quote.guests,
        breakdown=quote.breakdown.to_dict(),
        deposit_amount=quote.deposit_amount,
        customization=quote.selection.to_dict(),
    )


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(booking_limiter)],
)
async def create_booking(
    request: BookingCreate,
    db: Db,
    bookings: Bookings,
    actor: Actor,
) -> BookingResponse:
    """Checkout: price server side and create the booking."""
    booking = await bookings.create_booking(
        db,
        user_id=request.user_id,
        package_id=request.package_id,
        beat_bloom_id=request.beat_bloom_id,
        event_date=request.event_date,
        location=request.location,
        guests=request.guests,
        customization=request.customization.to_request(),
        customer_email=request.customer_email,
        customer_phone=request.customer_phone,
        actor=actor,
    )
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: UUID, db: Db) -> BookingResponse:
    """Get booking details."""
    booking = await get_booking_or_404(db, booking_id)
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}/payments", response_model=list[PaymentResponse])
async def list_booking_payments(
    booking_id: UUID,
    db: Db,
    payments: Payments,
) -> list[PaymentResponse]:
    """Payment ledger for a booking, oldest first."""
    await get_booking_or_404(db, booking_id)
    entries = await payments.list_payments(db, booking_id)
    return [PaymentResponse.model_validate(p) for p in entries]


@router.post("/{booking_id}/payments", response_model=PaymentAttemptResponse)
async def record_booking_payment(
    booking_id: UUID,
    request: PaymentCreate,
    db: Db,
    payments: Payments,
    actor: Actor,
) -> PaymentAttemptResponse:
    """Charge through a gateway, or record a confirmed transaction."""
    if request.method == PaymentMethod.CASH.value and not request.gateway_transaction_id:
        raise ValidationError("Cash payments must reference a receipt as gateway_transaction_id")

    if request.gateway_transaction_id:
        booking = await payments.record_payment(
            db,
            booking_id,
            request.amount,
            method=PaymentMethod(request.method),
            gateway=request.gateway or "manual",
            gateway_transaction_id=request.gateway_transaction_id,
            expected_version=request.expected_version,
            actor=actor,
        )
        return PaymentAttemptResponse(
            booking=BookingResponse.model_validate(booking),
            transaction_id=request.gateway_transaction_id,
        )

    outcome = await payments.charge_booking(
        db,
        booking_id,
        request.amount,
        gateway=request.gateway,
        payment_method=request.payment_method,
        expected_version=request.expected_version,
        actor=actor,
    )
    return PaymentAttemptResponse(
        booking=BookingResponse.model_validate(outcome.booking),
        pending=outcome.pending,
        transaction_id=outcome.transaction_id,
        client_secret=outcome.client_secret,
    )


@router.post("/{booking_id}/assign-vendor", response_model=BookingResponse)
async def assign_vendor(
    booking_id: UUID,
    request: AssignVendorRequest,
    db: Db,
    assignments: Annotated[AssignmentService, Depends(get_assignment_service)],
    actor: Actor,
) -> BookingResponse:
    """Assign or change the booking's vendor."""
    booking = await assignments.assign_vendor(
        db,
        booking_id,
        request.vendor_id,
        expected_version=request.expected_version,
        actor=actor,
    )
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/start", response_model=BookingResponse)
async def start_booking_service(
    booking_id: UUID,
    db: Db,
    bookings: Bookings,
    actor: Actor,
    request: VersionedCommand | None = None,
) -> BookingResponse:
    """Vendor starts the event service."""
    booking = await bookings.start_service(
        db,
        booking_id,
        expected_version=request.expected_version if request else None,
        actor=actor,
    )
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    request: BookingCancelRequest,
    db: Db,
    bookings: Bookings,
    actor: Actor,
) -> BookingResponse:
    """Cancel a booking that has not completed."""
    booking = await bookings.cancel_booking(
        db,
        booking_id,
        reason=request.reason,
        cancelled_by=request.cancelled_by,
        expected_version=request.expected_version,
        actor=actor,
    )
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/complete", response_model=CompletionResponse)
async def request_completion(
    booking_id: UUID,
    db: Db,
    completions: Annotated[CompletionService, Depends(get_completion_service)],
    actor: Actor,
    request: VersionedCommand | None = None,
) -> CompletionResponse:
    """Complete the booking, or issue an OTP when cash is still due."""
    result = await completions.request_completion(
        db,
        booking_id,
        expected_version=request.expected_version if request else None,
        actor=actor,
    )
    return CompletionResponse(
        booking=BookingResponse.model_validate(result.booking),
        otp_required=result.otp_required,
    )


@router.post("/{booking_id}/otp", response_model=BookingResponse)
async def issue_completion_otp(
    booking_id: UUID,
    db: Db,
    completions: Annotated[CompletionService, Depends(get_completion_service)],
    actor: Actor,
    request: VersionedCommand | None = None,
) -> BookingResponse:
    """Issue (or re-issue) the completion code to the customer."""
    booking = await completions.issue_otp(
        db,
        booking_id,
        expected_version=request.expected_version if request else None,
        actor=actor,
    )
    return BookingResponse.model_validate(booking)


@router.post(
    "/{booking_id}/otp/verify",
    response_model=BookingResponse,
    dependencies=[Depends(otp_verify_limiter)],
)
async def verify_completion_otp(
    booking_id: UUID,
    request: OtpVerifyRequest,
    db: Db,
    completions: Annotated[CompletionService, Depends(get_completion_service)],
    actor: Actor,
) -> BookingResponse:
    """Verify the completion code and complete the booking."""
    booking = await completions.verify_otp(
        db,
        booking_id,
        request.code,
        expected_version=request.expected_version,
        actor=actor,
    )
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/refund", response_model=BookingResponse)
async def refund_booking(
    booking_id: UUID,
    request: RefundRequest,
    db: Db,
    refunds: Annotated[RefundService, Depends(get_refund_service)],
    actor: Actor,
) -> BookingResponse:
    """Refund a cancelled booking."""
    booking = await refunds.refund(
        db,
        booking_id,
        reason=request.reason,
        amount=request.amount,
        expected_version=request.expected_version,
        actor=actor,
    )
    return BookingResponse.model_validate(booking)
