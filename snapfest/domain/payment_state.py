"""Booking payment state machine and deposit policy.

States:
- PENDING_PAYMENT: nothing (or less than the deposit) collected
- PARTIALLY_PAID: deposit threshold reached
- FULLY_PAID: total collected
- FAILED_PAYMENT: last attempt failed; further attempts are still accepted
"""

from decimal import Decimal
from enum import Enum

from snapfest.core.exceptions import ConflictError
from snapfest.domain.pricing import round_half_up


class PaymentStatus(str, Enum):
    """Booking-level payment status."""

    PENDING_PAYMENT = "PENDING_PAYMENT"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    FULLY_PAID = "FULLY_PAID"
    FAILED_PAYMENT = "FAILED_PAYMENT"


class LedgerStatus(str, Enum):
    """Status of a single payment ledger entry."""

    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    ONLINE = "online"
    CASH = "cash"


PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING_PAYMENT: {
        PaymentStatus.PARTIALLY_PAID,
        PaymentStatus.FULLY_PAID,
        PaymentStatus.FAILED_PAYMENT,
    },
    PaymentStatus.PARTIALLY_PAID: {PaymentStatus.FULLY_PAID, PaymentStatus.FAILED_PAYMENT},
    PaymentStatus.FAILED_PAYMENT: {
        PaymentStatus.PENDING_PAYMENT,
        PaymentStatus.PARTIALLY_PAID,
        PaymentStatus.FULLY_PAID,
    },
    PaymentStatus.FULLY_PAID: set(),
}

# Payment states that unlock vendor assignment.
FUNDED_STATES = {PaymentStatus.PARTIALLY_PAID, PaymentStatus.FULLY_PAID}


def assert_payment_transition(current: str | PaymentStatus, target: str | PaymentStatus) -> None:
    """Validate a payment-status transition.

    Raises:
        ConflictError: If the transition is not allowed
    """
    current = PaymentStatus(current)
    target = PaymentStatus(target)
    if target not in PAYMENT_TRANSITIONS[current]:
        raise ConflictError(
            f"Invalid payment transition: {current.value} → {target.value}"
        )


def calculate_deposit(total_amount: int, fraction: float) -> int:
    """Deposit threshold that unlocks PARTIALLY_PAID, frozen at checkout."""
    deposit = round_half_up(Decimal(total_amount) * Decimal(str(fraction)))
    return min(max(deposit, 0), total_amount)


def status_for_amount(amount_paid: int, deposit_amount: int, total_amount: int) -> PaymentStatus:
    """Payment status implied by the collected amount."""
    if amount_paid >= total_amount:
        return PaymentStatus.FULLY_PAID
    if amount_paid > 0 and amount_paid >= deposit_amount:
        return PaymentStatus.PARTIALLY_PAID
    return PaymentStatus.PENDING_PAYMENT


def next_status_after_success(
    current: str | PaymentStatus,
    amount_paid: int,
    deposit_amount: int,
    total_amount: int,
) -> PaymentStatus:
    """Status after a successful payment raised ``amount_paid``.

    Returns ``current`` when no threshold was crossed.
    """
    current = PaymentStatus(current)
    target = status_for_amount(amount_paid, deposit_amount, total_amount)
    if target == current:
        return current
    if current == PaymentStatus.PARTIALLY_PAID and target == PaymentStatus.PENDING_PAYMENT:
        return current
    assert_payment_transition(current, target)
    return target


def next_status_after_failure(current: str | PaymentStatus) -> PaymentStatus:
    """Status after a failed payment attempt.

    A stale failure for a settled booking leaves it FULLY_PAID.
    """
    current = PaymentStatus(current)
    if current in (PaymentStatus.FAILED_PAYMENT, PaymentStatus.FULLY_PAID):
        return current
    assert_payment_transition(current, PaymentStatus.FAILED_PAYMENT)
    return PaymentStatus.FAILED_PAYMENT
