"""Payment ledger and payment-status service.

``Booking.amount_paid`` is a cached projection of the append-only ledger:
it always equals the sum of SUCCESS entries minus the sum of REFUNDED
entries, and both are written in the same transaction.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from snapfest.config import settings
from snapfest.core.concurrency import (
    check_expected_version,
    claim_for_gateway,
    flush_or_conflict,
    release_gateway_claim,
    retry_on_conflict,
)
from snapfest.core.exceptions import (
    ConcurrencyError,
    ConflictError,
    PaymentError,
    ValidationError,
)
from snapfest.domain.booking_state import is_terminal
from snapfest.domain.payment_state import (
    LedgerStatus,
    PaymentMethod,
    PaymentStatus,
    next_status_after_failure,
    next_status_after_success,
)
from snapfest.gateways.base import GatewayEvent, GatewayType
from snapfest.models.booking import Booking
from snapfest.models.payment import Payment
from snapfest.services.audit_service import AuditService, audit_service, booking_snapshot
from snapfest.services.booking_service import get_booking_or_404
from snapfest.services.gateway_service import GatewayService, gateway_service
from snapfest.services.notification_service import (
    NotificationService,
    notification_service,
    notify_customer,
)

logger = logging.getLogger(__name__)


def assert_payable(booking: Booking, amount: int) -> None:
    """Guard: booking accepts a successful payment of ``amount``.

    Raises:
        ConflictError: Booking is terminal or already fully paid
        ValidationError: Amount is not positive or exceeds the balance
    """
    if is_terminal(booking.vendor_status):
        raise ConflictError(f"Cannot take payment for a {booking.vendor_status} booking")
    if booking.payment_status == PaymentStatus.FULLY_PAID.value:
        raise ConflictError("Booking is already fully paid")
    if amount <= 0:
        raise ValidationError(f"Payment: amount must be positive, got {amount}")
    if amount > booking.remaining_amount:
        raise ValidationError(
            f"Payment of {amount} exceeds outstanding balance {booking.remaining_amount}"
        )


def is_duplicate_delivery(existing: list[Payment], succeeded: bool) -> bool:
    """Whether an outcome for a transaction is already in the ledger.

    A settled transaction absorbs every later notification. A failure is a
    duplicate only of an earlier failure, so a retried intent can still
    succeed after a failed attempt.
    """
    statuses = {p.status for p in existing}
    if LedgerStatus.SUCCESS.value in statuses:
        return True
    return not succeeded and LedgerStatus.FAILED.value in statuses


@dataclass
class ChargeOutcome:
    """A gateway charge that settled, or one left for the gateway's webhook."""

    booking: Booking
    pending: bool = False
    transaction_id: str | None = None
    client_secret: str | None = None


class PaymentService:
    """Service for recording payments against bookings."""

    def __init__(
        self,
        gateways: GatewayService | None = None,
        notifier: NotificationService | None = None,
        audit: AuditService | None = None,
        retry_attempts: int | None = None,
        claim_ttl: timedelta | None = None,
    ):
        self.gateways = gateways or gateway_service
        self.notifier = notifier or notification_service
        self.audit = audit or audit_service
        self.retry_attempts = retry_attempts or settings.concurrency_retry_attempts
        self.claim_ttl = claim_ttl or timedelta(seconds=settings.gateway_claim_ttl_seconds)

    async def list_payments(self, db: AsyncSession, booking_id: UUID) -> list[Payment]:
        """Ledger entries for a booking, oldest first."""
        result = await db.execute(
            select(Payment)
            .where(Payment.booking_id == booking_id)
            .order_by(Payment.created_at, Payment.id)
        )
        return list(result.scalars().all())

    async def ledger_balance(self, db: AsyncSession, booking_id: UUID) -> int:
        """Σ SUCCESS − Σ REFUNDED for a booking."""
        return sum(p.signed_amount for p in await self.list_payments(db, booking_id))

    async def find_by_transaction(self, db: AsyncSession, transaction_id: str) -> list[Payment]:
        result = await db.execute(
            select(Payment).where(Payment.gateway_transaction_id == transaction_id)
        )
        return list(result.scalars().all())

    async def record_payment(
        self,
        db: AsyncSession,
        booking_id: UUID,
        amount: int,
        method: PaymentMethod = PaymentMethod.ONLINE,
        gateway: str | None = None,
        gateway_transaction_id: str | None = None,
        succeeded: bool = True,
        failure_reason: str | None = None,
        gateway_response: dict | None = None,
        expected_version: int | None = None,
        actor: str = "system",
    ) -> Booking:
        """Append a payment attempt to the ledger and advance payment status.

        An outcome already recorded for ``gateway_transaction_id`` is a
        duplicate delivery: the booking is returned unchanged. A failed
        attempt against a settled or terminal booking is recorded without
        touching its payment status.

        Raises:
            ConflictError: Booking cannot take the successful payment
            ValidationError: Bad amount for a successful payment
            ConcurrencyError: Stale ``expected_version`` or lost update
        """
        booking = await get_booking_or_404(db, booking_id)
        return await self._apply_payment(
            db,
            booking,
            amount,
            method=method,
            gateway=gateway,
            gateway_transaction_id=gateway_transaction_id,
            succeeded=succeeded,
            failure_reason=failure_reason,
            gateway_response=gateway_response,
            expected_version=expected_version,
            actor=actor,
        )

    async def _apply_payment(
        self,
        db: AsyncSession,
        booking: Booking,
        amount: int,
        method: PaymentMethod,
        gateway: str | None,
        gateway_transaction_id: str | None,
        succeeded: bool,
        failure_reason: str | None,
        gateway_response: dict | None,
        expected_version: int | None,
        actor: str,
    ) -> Booking:
        if gateway_transaction_id:
            existing = await self.find_by_transaction(db, gateway_transaction_id)
            if is_duplicate_delivery(existing, succeeded):
                logger.info(
                    f"Duplicate payment notification {gateway_transaction_id} "
                    f"for booking {booking.id} ignored"
                )
                return booking

        check_expected_version(booking, expected_version)
        method = PaymentMethod(method)
        old_values = booking_snapshot(booking)
        settled = (
            is_terminal(booking.vendor_status)
            or booking.payment_status == PaymentStatus.FULLY_PAID.value
        )

        if succeeded:
            assert_payable(booking, amount)
            entry_status = LedgerStatus.SUCCESS
            booking.amount_paid += amount
            booking.payment_status = next_status_after_success(
                booking.payment_status,
                booking.amount_paid,
                booking.deposit_amount,
                booking.total_amount,
            ).value
            if method == PaymentMethod.ONLINE:
                booking.online_payment_done = True
        else:
            entry_status = LedgerStatus.FAILED
            if settled:
                logger.warning(
                    f"Failed payment {gateway_transaction_id} recorded against settled booking "
                    f"{booking.id} ({booking.vendor_status}/{booking.payment_status})"
                )
            else:
                booking.payment_status = next_status_after_failure(booking.payment_status).value

        db.add(
            Payment(
                booking_id=booking.id,
                amount=amount,
                currency=settings.currency,
                method=method.value,
                gateway=gateway,
                gateway_transaction_id=gateway_transaction_id,
                gateway_response=gateway_response,
                status=entry_status.value,
                failure_reason=failure_reason,
            )
        )

        try:
            await flush_or_conflict(db)
        except IntegrityError as e:
            # Same outcome inserted concurrently; a retry sees the duplicate
            raise ConcurrencyError() from e

        await self.audit.log_booking_action(
            db,
            actor,
            "payment_success" if succeeded else "payment_failed",
            booking,
            old_values,
            extra={"amount": amount, "transaction_id": gateway_transaction_id},
        )
        logger.info(
            f"Payment {entry_status.value} for booking {booking.id}: amount={amount} "
            f"paid={booking.amount_paid}/{booking.total_amount} status={booking.payment_status}"
        )

        if succeeded:
            await notify_customer(
                self.notifier,
                booking,
                "payment_received",
                amount=amount,
                payment_status=booking.payment_status,
            )
        elif not settled:
            await notify_customer(
                self.notifier,
                booking,
                "payment_failed",
                reason=failure_reason or "declined",
            )
        return booking

    async def charge_booking(
        self,
        db: AsyncSession,
        booking_id: UUID,
        amount: int,
        gateway: str | None = None,
        payment_method: str | None = None,
        expected_version: int | None = None,
        actor: str = "system",
    ) -> ChargeOutcome:
        """Charge through a gateway and record the outcome.

        The booking is claimed (and the claim committed) before the gateway
        is called, so a concurrent charge or refund fails without moving
        money. A charge the gateway leaves pending, such as one awaiting 3-D
        Secure, records nothing: its webhook settles it.

        A declined charge is committed as a FAILED ledger entry before
        ``PaymentError`` is raised, so the attempt stays visible.
        """
        booking = await get_booking_or_404(db, booking_id, for_update=True)
        check_expected_version(booking, expected_version)
        assert_payable(booking, amount)
        await claim_for_gateway(db, booking, self.claim_ttl)

        gateway = gateway or settings.default_gateway
        try:
            result = await self.gateways.charge(
                gateway,
                amount=amount,
                currency=settings.currency,
                reference_id=str(booking.id),
                description=f"SnapFest booking {booking.id}",
                metadata={"payment_method": payment_method} if payment_method else None,
            )
        except Exception:
            await release_gateway_claim(db, booking)
            raise

        if result.pending:
            await release_gateway_claim(db, booking)
            logger.info(
                f"Charge {result.transaction_id} of {amount} for booking {booking.id} "
                "awaits gateway confirmation"
            )
            return ChargeOutcome(
                booking=booking,
                pending=True,
                transaction_id=result.transaction_id,
                client_secret=(result.raw_response or {}).get("client_secret"),
            )

        booking.gateway_claimed_at = None
        booking = await self._apply_payment(
            db,
            booking,
            amount,
            method=PaymentMethod.ONLINE,
            gateway=gateway,
            gateway_transaction_id=result.transaction_id or f"declined_{uuid.uuid4().hex}",
            succeeded=result.success,
            failure_reason=result.error_message,
            gateway_response=result.raw_response,
            expected_version=None,
            actor=actor,
        )

        if not result.success:
            await db.commit()
            raise PaymentError(result.error_message or "Payment was declined")
        return ChargeOutcome(booking=booking, transaction_id=result.transaction_id)

    async def handle_gateway_event(
        self,
        db: AsyncSession,
        gateway: str | GatewayType,
        event: GatewayEvent,
    ) -> Booking:
        """Apply a verified webhook event, idempotently.

        Lost races against concurrent booking updates are retried a bounded
        number of times.
        """
        try:
            booking_id = UUID(event.booking_id)
        except ValueError as e:
            raise ValidationError(f"Malformed booking id in gateway event: {event.booking_id}") from e

        gateway_name = GatewayType(gateway).value

        async def apply() -> Booking:
            return await self.record_payment(
                db,
                booking_id,
                event.amount,
                method=PaymentMethod.ONLINE,
                gateway=gateway_name,
                gateway_transaction_id=event.transaction_id,
                succeeded=event.succeeded,
                failure_reason=event.failure_reason,
                gateway_response=event.raw_event,
                actor=f"gateway:{gateway_name}",
            )

        return await retry_on_conflict(db, apply, self.retry_attempts)


payment_service = PaymentService()
