"""Vendor assignment guard."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from snapfest.core.concurrency import check_expected_version, flush_or_conflict
from snapfest.core.exceptions import AssignmentError, ConflictError, NotFoundError
from snapfest.domain.booking_state import ASSIGNABLE_STATES, VendorStatus
from snapfest.domain.payment_state import FUNDED_STATES, PaymentStatus
from snapfest.models.booking import Booking
from snapfest.services.audit_service import AuditService, audit_service, booking_snapshot
from snapfest.services.booking_service import get_booking_or_404
from snapfest.services.notification_service import (
    EMAIL,
    SMS,
    NotificationService,
    notification_service,
    notify_customer,
)
from snapfest.services.vendor_directory import VendorDirectory, vendor_directory
from snapfest.utils.datetime_normaliser import utcnow

logger = logging.getLogger(__name__)


class AssignmentService:
    """Binds vendors to funded bookings that have not started."""

    def __init__(
        self,
        directory: VendorDirectory | None = None,
        notifier: NotificationService | None = None,
        audit: AuditService | None = None,
    ):
        self.directory = directory or vendor_directory
        self.notifier = notifier or notification_service
        self.audit = audit or audit_service

    async def assign_vendor(
        self,
        db: AsyncSession,
        booking_id: UUID,
        vendor_id: UUID,
        expected_version: int | None = None,
        actor: str = "system",
    ) -> Booking:
        """Assign (or change) the booking's vendor.

        Re-assigning the vendor already bound is a no-op. Vendor
        availability is read, never written.

        Raises:
            NotFoundError: Unknown booking or vendor
            ConflictError: Booking already in progress or terminal
            AssignmentError: Vendor unavailable, or booking not yet funded
            ConcurrencyError: Stale ``expected_version`` or lost update
        """
        booking = await get_booking_or_404(db, booking_id)
        check_expected_version(booking, expected_version)

        vendor = await self.directory.get(db, vendor_id)
        if vendor is None:
            raise NotFoundError("Vendor", str(vendor_id))

        current = VendorStatus(booking.vendor_status)
        if current not in ASSIGNABLE_STATES:
            raise ConflictError(f"Cannot assign a vendor to a {current.value} booking")

        if PaymentStatus(booking.payment_status) not in FUNDED_STATES:
            raise AssignmentError(
                f"Booking must be partially or fully paid before assignment "
                f"(payment status is {booking.payment_status})"
            )

        if not self.directory.is_available(vendor):
            raise AssignmentError(
                f"Vendor {vendor.business_name} is not available ({vendor.availability})"
            )

        if current == VendorStatus.ASSIGNED and booking.assigned_vendor_id == vendor.id:
            return booking

        old_values = booking_snapshot(booking)
        previous_vendor_id = booking.assigned_vendor_id
        booking.assigned_vendor_id = vendor.id
        booking.vendor_status = VendorStatus.ASSIGNED.value
        booking.assigned_at = utcnow()
        await flush_or_conflict(db)

        action = "vendor_change" if previous_vendor_id else "vendor_assign"
        await self.audit.log_booking_action(db, actor, action, booking, old_values)
        logger.info(f"Booking {booking.id}: {action} to vendor {vendor.id} by {actor}")

        await notify_customer(
            self.notifier,
            booking,
            "vendor_assigned",
            vendor_name=vendor.business_name,
            event_date=booking.event_date.isoformat(),
        )
        vendor_payload = {
            "booking_id": str(booking.id),
            "event_date": booking.event_date.isoformat(),
            "location": booking.location,
        }
        if vendor.email:
            await self.notifier.send(EMAIL, "booking_assigned_to_vendor", {**vendor_payload, "to": vendor.email})
        if vendor.phone:
            await self.notifier.send(SMS, "booking_assigned_to_vendor", {**vendor_payload, "to": vendor.phone})
        return booking


assignment_service = AssignmentService()
