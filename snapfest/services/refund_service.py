"""Refund coordinator for cancelled bookings."""

import logging
from datetime import timedelta
from uuid import UUID

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from snapfest.config import settings
from snapfest.core.concurrency import check_expected_version, claim_for_gateway, flush_or_conflict
from snapfest.core.exceptions import RefundError
from snapfest.domain.booking_state import RefundStatus
from snapfest.domain.payment_state import LedgerStatus, PaymentMethod
from snapfest.domain.refund_policy import allocate_refund, refundable_amount
from snapfest.gateways.base import GatewayType
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
from snapfest.services.payment_service import PaymentService, payment_service

logger = logging.getLogger(__name__)


def refundable_entries(payments: list[Payment]) -> list[tuple[Payment, int]]:
    """SUCCESS entries with the amount not yet refunded, newest first."""
    refunded: dict[UUID, int] = {}
    for p in payments:
        if p.status == LedgerStatus.REFUNDED.value and p.refund_of_id is not None:
            refunded[p.refund_of_id] = refunded.get(p.refund_of_id, 0) + p.amount

    entries = []
    for p in reversed(payments):
        if p.status != LedgerStatus.SUCCESS.value:
            continue
        available = p.amount - refunded.get(p.id, 0)
        if available > 0:
            entries.append((p, available))
    return entries


class RefundService:
    """Service for refunding money held against cancelled bookings."""

    def __init__(
        self,
        gateways: GatewayService | None = None,
        payments: PaymentService | None = None,
        notifier: NotificationService | None = None,
        audit: AuditService | None = None,
        claim_ttl: timedelta | None = None,
    ):
        self.gateways = gateways or gateway_service
        self.payments = payments or payment_service
        self.notifier = notifier or notification_service
        self.audit = audit or audit_service
        self.claim_ttl = claim_ttl or timedelta(seconds=settings.gateway_claim_ttl_seconds)

    async def refund(
        self,
        db: AsyncSession,
        booking_id: UUID,
        reason: str,
        amount: int | None = None,
        expected_version: int | None = None,
        actor: str = "system",
    ) -> Booking:
        """Refund ``amount`` (default: everything held) through the gateways.

        The refund is split across successful ledger entries, newest first,
        one gateway call per entry. The booking is claimed before the first
        call, so a concurrent refund or charge fails without moving money.

        Portions the gateway accepts are recorded even when a later portion
        fails or the gateway call raises; in that case the booking is left
        ``refund_status = FAILED``, committed, and ``RefundError`` is raised.

        Raises:
            ConflictError: Booking not cancelled, or claimed by another operation
            ConcurrencyError: Lost the race to claim the booking
            RefundError: Already processed, nothing paid, or gateway failure
            ValidationError: Bad partial amount
        """
        booking = await get_booking_or_404(db, booking_id, for_update=True)
        check_expected_version(booking, expected_version)

        to_refund = refundable_amount(
            booking.vendor_status, booking.refund_status, booking.amount_paid, amount
        )

        payments = await self.payments.list_payments(db, booking.id)
        entries = refundable_entries(payments)
        by_id = {p.id: p for p, _ in entries}
        portions = allocate_refund(to_refund, [(p.id, available) for p, available in entries])

        old_values = booking_snapshot(booking)
        await claim_for_gateway(db, booking, self.claim_ttl)
        refunded_total = 0
        failure: str | None = None

        for portion in portions:
            original = by_id[portion.payment_id]
            gateway = original.gateway or GatewayType.MANUAL.value
            try:
                result = await self.gateways.process_refund(
                    gateway,
                    transaction_id=original.gateway_transaction_id or str(original.id),
                    amount=portion.amount,
                    reason=reason,
                )
            except Exception as e:
                # Earlier accepted portions must still reach the ledger
                logger.exception(f"Refund gateway call for booking {booking.id} raised")
                failure = str(e) or type(e).__name__
                break
            if not result.success:
                failure = result.error_message or "Gateway rejected the refund"
                logger.error(
                    f"Refund of {portion.amount} against payment {original.id} "
                    f"for booking {booking.id} failed: {failure}"
                )
                break

            db.add(
                Payment(
                    booking_id=booking.id,
                    amount=portion.amount,
                    currency=settings.currency,
                    method=original.method or PaymentMethod.ONLINE.value,
                    gateway=gateway,
                    gateway_transaction_id=result.refund_id,
                    gateway_response=result.raw_response,
                    status=LedgerStatus.REFUNDED.value,
                    refund_of_id=original.id,
                )
            )
            refunded_total += portion.amount

        booking.amount_paid -= refunded_total
        booking.refund_amount += refunded_total
        booking.gateway_claimed_at = None
        if failure is None:
            booking.refund_status = RefundStatus.PROCESSED.value
            booking.refund_failure_reason = None
        else:
            booking.refund_status = RefundStatus.FAILED.value
            booking.refund_failure_reason = failure
        await flush_or_conflict(db)

        await self.audit.log_booking_action(
            db,
            actor,
            "refund_processed" if failure is None else "refund_failed",
            booking,
            old_values,
            extra={"requested": to_refund, "refunded": refunded_total, "reason": reason},
        )

        if failure is not None:
            await notify_customer(self.notifier, booking, "refund_failed")
            # Accepted portions persist even though the call fails
            await db.commit()
            raise RefundError(
                f"Refund failed after {refunded_total} of {to_refund} was refunded: {failure}",
                status_code=status.HTTP_502_BAD_GATEWAY,
            )

        logger.info(f"Refund of {refunded_total} processed for booking {booking.id}")
        await notify_customer(self.notifier, booking, "refund_processed", amount=refunded_total)
        return booking


refund_service = RefundService()
