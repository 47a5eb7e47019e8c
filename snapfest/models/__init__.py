"""Database models."""

from snapfest.models.audit import AuditLog
from snapfest.models.booking import Booking
from snapfest.models.catalog import BeatBloom, Package
from snapfest.models.payment import Payment
from snapfest.models.vendor import Vendor, VendorAvailability

__all__ = [
    # Catalog
    "Package",
    "BeatBloom",
    # Vendor
    "Vendor",
    "VendorAvailability",
    # Booking
    "Booking",
    # Payment
    "Payment",
    # Audit
    "AuditLog",
]
