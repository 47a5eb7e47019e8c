"""Completion verification guard.

A booking completes either automatically (fully paid online) or when the
customer hands the vendor a one-time code, at which point the vendor has
collected the outstanding balance in cash.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from snapfest.config import settings
from snapfest.core.concurrency import check_expected_version, flush_or_conflict
from snapfest.core.exceptions import ConflictError, OtpError, OtpExpiredError, OtpMismatchError
from snapfest.core.security import generate_otp, hash_otp, verify_otp
from snapfest.domain.booking_state import VendorStatus, assert_vendor_transition
from snapfest.domain.payment_state import (
    LedgerStatus,
    PaymentMethod,
    PaymentStatus,
    assert_payment_transition,
)
from snapfest.models.booking import Booking
from snapfest.models.payment import Payment
from snapfest.services.audit_service import AuditService, audit_service, booking_snapshot
from snapfest.services.booking_service import get_booking_or_404
from snapfest.services.notification_service import (
    NotificationService,
    notification_service,
    notify_customer,
)
from snapfest.utils.datetime_normaliser import ensure_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    booking: Booking
    otp_required: bool


def _require_in_progress(booking: Booking) -> None:
    if booking.vendor_status != VendorStatus.IN_PROGRESS.value:
        raise ConflictError(
            f"Booking must be IN_PROGRESS to complete (currently {booking.vendor_status})"
        )


class CompletionService:
    """Service for completing bookings and verifying completion OTPs."""

    def __init__(
        self,
        notifier: NotificationService | None = None,
        audit: AuditService | None = None,
        otp_ttl: timedelta | None = None,
    ):
        self.notifier = notifier or notification_service
        self.audit = audit or audit_service
        self.otp_ttl = otp_ttl or timedelta(minutes=settings.otp_ttl_minutes)

    async def request_completion(
        self,
        db: AsyncSession,
        booking_id: UUID,
        expected_version: int | None = None,
        actor: str = "system",
    ) -> CompletionResult:
        """Complete immediately when fully paid online, otherwise issue an OTP."""
        booking = await get_booking_or_404(db, booking_id)
        check_expected_version(booking, expected_version)
        _require_in_progress(booking)

        if booking.payment_status == PaymentStatus.FULLY_PAID.value and booking.online_payment_done:
            old_values = booking_snapshot(booking)
            self._mark_completed(booking)
            await flush_or_conflict(db)
            await self.audit.log_booking_action(db, actor, "booking_complete", booking, old_values)
            logger.info(f"Booking {booking.id} auto-completed (fully paid online)")
            await notify_customer(self.notifier, booking, "booking_completed")
            return CompletionResult(booking=booking, otp_required=False)

        booking = await self.issue_otp(db, booking.id, actor=actor)
        return CompletionResult(booking=booking, otp_required=True)

    async def issue_otp(
        self,
        db: AsyncSession,
        booking_id: UUID,
        expected_version: int | None = None,
        actor: str = "system",
    ) -> Booking:
        """Issue a fresh completion code, replacing any live one.

        Only the hash is stored; the code itself goes to the customer.
        """
        booking = await get_booking_or_404(db, booking_id)
        check_expected_version(booking, expected_version)
        _require_in_progress(booking)

        otp = generate_otp()
        now = utcnow()
        old_values = booking_snapshot(booking)
        booking.otp_hash = hash_otp(otp)
        booking.otp_issued_at = now
        booking.otp_expires_at = now + self.otp_ttl
        booking.otp_verified = False
        await flush_or_conflict(db)

        await self.audit.log_booking_action(
            db, actor, "otp_issue", booking, old_values,
            extra={"otp_expires_at": booking.otp_expires_at.isoformat()},
        )
        logger.info(f"Completion OTP issued for booking {booking.id}")

        await notify_customer(
            self.notifier,
            booking,
            "completion_otp",
            otp=otp,
            ttl_minutes=int(self.otp_ttl.total_seconds() // 60),
        )
        return booking

    async def verify_otp(
        self,
        db: AsyncSession,
        booking_id: UUID,
        code: str,
        expected_version: int | None = None,
        actor: str = "system",
    ) -> Booking:
        """Verify the completion code and complete the booking.

        The outstanding balance is recorded as a cash ledger entry collected
        by the vendor. A rejected code leaves the booking untouched.

        Raises:
            ConflictError: Booking not in progress
            OtpError: No code issued
            OtpExpiredError: Code past its validity window
            OtpMismatchError: Code does not match
        """
        booking = await get_booking_or_404(db, booking_id)
        check_expected_version(booking, expected_version)
        _require_in_progress(booking)

        if not booking.otp_hash or booking.otp_expires_at is None:
            raise OtpError("No completion OTP has been issued for this booking")
        if utcnow() > ensure_utc(booking.otp_expires_at):
            logger.info(f"Expired OTP submitted for booking {booking.id}")
            raise OtpExpiredError()
        if not verify_otp(code, booking.otp_hash):
            logger.warning(f"OTP mismatch for booking {booking.id}")
            raise OtpMismatchError()

        old_values = booking_snapshot(booking)
        balance = booking.total_amount - booking.amount_paid
        if balance > 0:
            db.add(
                Payment(
                    booking_id=booking.id,
                    amount=balance,
                    currency=settings.currency,
                    method=PaymentMethod.CASH.value,
                    status=LedgerStatus.SUCCESS.value,
                )
            )
            booking.amount_paid = booking.total_amount

        if booking.payment_status != PaymentStatus.FULLY_PAID.value:
            assert_payment_transition(booking.payment_status, PaymentStatus.FULLY_PAID)
            booking.payment_status = PaymentStatus.FULLY_PAID.value

        booking.otp_verified = True
        booking.otp_verified_at = utcnow()
        booking.otp_hash = None
        booking.otp_expires_at = None
        self._mark_completed(booking)
        await flush_or_conflict(db)

        await self.audit.log_booking_action(
            db, actor, "otp_verify", booking, old_values, extra={"cash_collected": max(balance, 0)}
        )
        logger.info(f"Booking {booking.id} completed via OTP; cash collected={max(balance, 0)}")

        await notify_customer(self.notifier, booking, "booking_completed")
        return booking

    def _mark_completed(self, booking: Booking) -> None:
        assert_vendor_transition(booking.vendor_status, VendorStatus.COMPLETED)
        booking.vendor_status = VendorStatus.COMPLETED.value
        booking.completed_at = utcnow()


completion_service = CompletionService()
