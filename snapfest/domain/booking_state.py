"""Booking vendor-lifecycle state machine."""

from enum import Enum

from snapfest.core.exceptions import ConflictError


class VendorStatus(str, Enum):
    """Service execution status of a booking."""

    UNASSIGNED = "UNASSIGNED"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class RefundStatus(str, Enum):
    """Refund progress, orthogonal to the vendor lifecycle."""

    NONE = "NONE"
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


VENDOR_TRANSITIONS = {
    VendorStatus.UNASSIGNED: {VendorStatus.ASSIGNED, VendorStatus.CANCELLED},
    VendorStatus.ASSIGNED: {VendorStatus.IN_PROGRESS, VendorStatus.CANCELLED},
    VendorStatus.IN_PROGRESS: {VendorStatus.COMPLETED, VendorStatus.CANCELLED},
    VendorStatus.COMPLETED: set(),
    VendorStatus.CANCELLED: set(),
}

# Vendor may be (re)bound while the service has not started.
ASSIGNABLE_STATES = {VendorStatus.UNASSIGNED, VendorStatus.ASSIGNED}


def is_terminal(status: str | VendorStatus) -> bool:
    return not VENDOR_TRANSITIONS[VendorStatus(status)]


def assert_vendor_transition(current: str | VendorStatus, target: str | VendorStatus) -> None:
    """Validate a vendor-status transition.

    Raises:
        ConflictError: If the transition is not allowed
    """
    current = VendorStatus(current)
    target = VendorStatus(target)
    if target not in VENDOR_TRANSITIONS[current]:
        if is_terminal(current):
            raise ConflictError(f"Booking is already {current.value}; no further changes are allowed")
        raise ConflictError(
            f"Invalid booking transition: {current.value} → {target.value}"
        )
