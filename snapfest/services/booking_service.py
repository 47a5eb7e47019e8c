"""Booking checkout and lifecycle service.

Every mutation follows the same shape: load the booking, check the
caller's ``expected_version``, validate the transition, mutate, flush
(a versioned UPDATE), then audit and notify. The request's ``get_db``
dependency commits everything at once.
"""

import logging
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from snapfest.config import settings
from snapfest.core.concurrency import check_expected_version, flush_or_conflict
from snapfest.core.exceptions import NotFoundError, ValidationError
from snapfest.domain.booking_state import RefundStatus, VendorStatus, assert_vendor_transition
from snapfest.domain.catalog import PackageDefinition
from snapfest.domain.customization import (
    CustomizationRequest,
    CustomizationSelection,
    validate_customization,
)
from snapfest.domain.payment_state import PaymentStatus, calculate_deposit
from snapfest.domain.pricing import MAX_GUESTS, MIN_GUESTS, PriceBreakdown, clamp_guests, price
from snapfest.models.booking import Booking
from snapfest.models.catalog import BeatBloom, Package
from snapfest.services.audit_service import AuditService, audit_service, booking_snapshot
from snapfest.services.notification_service import (
    NotificationService,
    notification_service,
    notify_customer,
)
from snapfest.utils.datetime_normaliser import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Quote:
    """Priced, validated customization that has not been booked."""

    breakdown: PriceBreakdown
    selection: CustomizationSelection
    guests: int
    deposit_amount: int


async def get_booking_or_404(db: AsyncSession, booking_id: UUID, for_update: bool = False) -> Booking:
    """Load a booking with fresh column values.

    ``for_update`` takes a row lock where the database supports one.
    """
    stmt = select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFoundError("Booking", str(booking_id))
    return booking


class BookingService:
    """Service for pricing, checkout and vendor-lifecycle transitions."""

    def __init__(
        self,
        notifier: NotificationService | None = None,
        audit: AuditService | None = None,
        partial_payment_fraction: float | None = None,
        travel_fee: int | None = None,
    ):
        self.notifier = notifier or notification_service
        self.audit = audit or audit_service
        self.partial_payment_fraction = (
            partial_payment_fraction
            if partial_payment_fraction is not None
            else settings.partial_payment_fraction
        )
        self.travel_fee = travel_fee if travel_fee is not None else settings.default_travel_fee

    async def load_definition(
        self,
        db: AsyncSession,
        package_id: UUID | None,
        beat_bloom_id: UUID | None,
    ) -> PackageDefinition:
        """Resolve the booked catalog item to a pricing definition.

        Raises:
            ValidationError: Not exactly one of package / Beat & Bloom given
            NotFoundError: Item unknown or inactive
        """
        if (package_id is None) == (beat_bloom_id is None):
            raise ValidationError(
                "Exactly one of package_id or beat_bloom_id is required",
                errors=[
                    {
                        "field": "package_id",
                        "code": "ITEM_REQUIRED",
                        "message": "Book either a package or a Beat & Bloom service",
                    }
                ],
            )

        if package_id is not None:
            result = await db.execute(select(Package).where(Package.id == package_id))
            package = result.scalar_one_or_none()
            if package is None or not package.is_active:
                raise NotFoundError("Package", str(package_id))
            return package.to_definition()

        result = await db.execute(select(BeatBloom).where(BeatBloom.id == beat_bloom_id))
        beat_bloom = result.scalar_one_or_none()
        if beat_bloom is None or not beat_bloom.is_active:
            raise NotFoundError("Beat & Bloom service", str(beat_bloom_id))
        return beat_bloom.to_definition()

    async def quote(
        self,
        db: AsyncSession,
        package_id: UUID | None,
        beat_bloom_id: UUID | None,
        guests: int,
        customization: CustomizationRequest,
    ) -> Quote:
        """Price a customization without creating anything.

        Guest counts outside the bookable range are clamped for the preview.
        """
        definition = await self.load_definition(db, package_id, beat_bloom_id)
        selection = validate_customization(definition, customization)
        guests = clamp_guests(guests)
        breakdown = price(definition, guests, selection, travel_fee=self.travel_fee)
        return Quote(
            breakdown=breakdown,
            selection=selection,
            guests=guests,
            deposit_amount=calculate_deposit(breakdown.total, self.partial_payment_fraction),
        )

    async def create_booking(
        self,
        db: AsyncSession,
        user_id: UUID,
        event_date: date,
        location: str,
        guests: int,
        customization: CustomizationRequest,
        package_id: UUID | None = None,
        beat_bloom_id: UUID | None = None,
        customer_email: str | None = None,
        customer_phone: str | None = None,
        actor: str = "system",
    ) -> Booking:
        """Checkout: re-validate and re-price server side, then persist.

        The booking starts PENDING_PAYMENT / UNASSIGNED with the breakdown
        and deposit threshold frozen.
        """
        if event_date < utcnow().date():
            raise ValidationError(
                "Event date cannot be in the past",
                errors=[{"field": "event_date", "code": "DATE_IN_PAST", "message": "Event date cannot be in the past"}],
            )

        if not MIN_GUESTS <= guests <= MAX_GUESTS:
            message = f"Guests must be between {MIN_GUESTS} and {MAX_GUESTS}"
            raise ValidationError(
                message,
                errors=[{"field": "guests", "code": "GUESTS_OUT_OF_RANGE", "message": message}],
            )

        definition = await self.load_definition(db, package_id, beat_bloom_id)
        selection = validate_customization(definition, customization)
        breakdown = price(definition, guests, selection, travel_fee=self.travel_fee)

        booking = Booking(
            user_id=user_id,
            package_id=package_id,
            beat_bloom_id=beat_bloom_id,
            event_date=event_date,
            location=location,
            guests=guests,
            customization=selection.to_dict(),
            customer_email=customer_email,
            customer_phone=customer_phone,
            subtotal=breakdown.subtotal,
            add_ons_total=breakdown.add_ons_total,
            removed_discount=breakdown.removed_discount,
            travel_fee=breakdown.travel_fee,
            tax=breakdown.tax,
            total_amount=breakdown.total,
            deposit_amount=calculate_deposit(breakdown.total, self.partial_payment_fraction),
            amount_paid=0,
            payment_status=PaymentStatus.PENDING_PAYMENT.value,
            online_payment_done=False,
            vendor_status=VendorStatus.UNASSIGNED.value,
            refund_status=RefundStatus.NONE.value,
            refund_amount=0,
            otp_verified=False,
        )
        db.add(booking)
        await flush_or_conflict(db)

        await self.audit.log_booking_action(
            db, actor, "booking_create", booking, old_values=None,
            extra={"total_amount": booking.total_amount},
        )
        logger.info(
            f"Booking {booking.id} created: total={booking.total_amount} "
            f"deposit={booking.deposit_amount}"
        )

        await notify_customer(
            self.notifier,
            booking,
            "booking_created",
            event_date=booking.event_date.isoformat(),
            total_amount=booking.total_amount,
        )
        return booking

    async def start_service(
        self,
        db: AsyncSession,
        booking_id: UUID,
        expected_version: int | None = None,
        actor: str = "system",
    ) -> Booking:
        """Vendor begins the event service: ASSIGNED → IN_PROGRESS."""
        booking = await get_booking_or_404(db, booking_id)
        check_expected_version(booking, expected_version)
        assert_vendor_transition(booking.vendor_status, VendorStatus.IN_PROGRESS)

        old_values = booking_snapshot(booking)
        booking.vendor_status = VendorStatus.IN_PROGRESS.value
        booking.started_at = utcnow()
        await flush_or_conflict(db)

        await self.audit.log_booking_action(db, actor, "booking_start", booking, old_values)
        logger.info(f"Booking {booking.id} service started by {actor}")

        await notify_customer(self.notifier, booking, "service_started")
        return booking

    async def cancel_booking(
        self,
        db: AsyncSession,
        booking_id: UUID,
        reason: str,
        cancelled_by: str = "admin",
        expected_version: int | None = None,
        actor: str = "system",
    ) -> Booking:
        """Cancel a booking that has not completed.

        Cancellation never moves money; a booking holding funds is left with
        ``refund_status = PENDING`` for the refund coordinator.
        """
        booking = await get_booking_or_404(db, booking_id)
        check_expected_version(booking, expected_version)
        assert_vendor_transition(booking.vendor_status, VendorStatus.CANCELLED)

        old_values = booking_snapshot(booking)
        booking.vendor_status = VendorStatus.CANCELLED.value
        booking.cancellation_reason = reason
        booking.cancelled_by = cancelled_by
        booking.cancelled_at = utcnow()
        if booking.amount_paid > 0:
            booking.refund_status = RefundStatus.PENDING.value
        # A live completion code must not outlive the booking
        booking.otp_hash = None
        booking.otp_expires_at = None
        await flush_or_conflict(db)

        await self.audit.log_booking_action(
            db, actor, "booking_cancel", booking, old_values, extra={"reason": reason}
        )
        logger.info(f"Booking {booking.id} cancelled by {cancelled_by}: {reason}")

        await notify_customer(self.notifier, booking, "booking_cancelled", reason=reason)
        return booking


booking_service = BookingService()
