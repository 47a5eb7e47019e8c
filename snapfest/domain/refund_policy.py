"""Refund eligibility and allocation rules."""

from dataclasses import dataclass
from uuid import UUID

from snapfest.core.exceptions import ConflictError, RefundError, ValidationError
from snapfest.domain.booking_state import RefundStatus, VendorStatus


@dataclass(frozen=True)
class RefundPortion:
    """Part of a refund charged back against one successful ledger entry."""

    payment_id: UUID
    amount: int


def refundable_amount(
    vendor_status: str,
    refund_status: str,
    amount_paid: int,
    requested: int | None = None,
) -> int:
    """Validate refund preconditions and return the amount to refund.

    Args:
        vendor_status: Booking vendor status
        refund_status: Booking refund status
        amount_paid: Net amount currently held for the booking
        requested: Optional partial amount; defaults to everything held

    Raises:
        ConflictError: Booking is not cancelled
        RefundError: Already processed, or nothing to refund
        ValidationError: Requested amount is not positive or exceeds what is held
    """
    if VendorStatus(vendor_status) != VendorStatus.CANCELLED:
        raise ConflictError("Only cancelled bookings can be refunded")
    if RefundStatus(refund_status) == RefundStatus.PROCESSED:
        raise RefundError("Refund has already been processed for this booking")
    if amount_paid <= 0:
        raise RefundError("Nothing to refund: no amount has been paid")

    if requested is None:
        return amount_paid
    if requested <= 0:
        raise ValidationError("Refund amount must be positive")
    if requested > amount_paid:
        raise ValidationError(
            f"Refund amount ({requested}) exceeds amount paid ({amount_paid})"
        )
    return requested


def allocate_refund(amount: int, refundable_entries: list[tuple[UUID, int]]) -> list[RefundPortion]:
    """Spread ``amount`` over ledger entries, in the order given.

    Args:
        amount: Total to refund
        refundable_entries: (payment_id, remaining refundable amount) pairs,
            newest payment first

    Returns:
        Portions whose amounts sum to ``amount``
    """
    portions: list[RefundPortion] = []
    remaining = amount
    for payment_id, available in refundable_entries:
        if remaining <= 0:
            break
        take = min(available, remaining)
        if take > 0:
            portions.append(RefundPortion(payment_id=payment_id, amount=take))
            remaining -= take
    if remaining > 0:
        raise RefundError("Ledger does not hold enough successful payments to cover the refund")
    return portions
