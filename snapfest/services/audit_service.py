"""Booking audit trail service."""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from snapfest.models.audit import AuditLog

# Booking fields captured before/after each audited transition
TRACKED_FIELDS = (
    "payment_status",
    "vendor_status",
    "amount_paid",
    "assigned_vendor_id",
    "refund_status",
    "refund_amount",
    "otp_verified",
    "version",
)


def booking_snapshot(booking: Any) -> dict[str, Any]:
    """JSON-safe view of a booking's tracked fields."""
    snapshot: dict[str, Any] = {}
    for field in TRACKED_FIELDS:
        value = getattr(booking, field)
        snapshot[field] = str(value) if isinstance(value, UUID) else value
    return snapshot


class AuditService:
    """Service for append-only booking audit logging."""

    async def log_action(
        self,
        db: AsyncSession,
        actor: str,
        action: str,
        resource_type: str,
        resource_id: UUID,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLog:
        """Add an audit entry to the current transaction.

        Args:
            db: Database session
            actor: Who performed the action (admin id, vendor id, "system")
            action: Action name (e.g., "booking_cancel")
            resource_type: Resource type (e.g., "booking")
            resource_id: Resource ID
            old_values: Previous state
            new_values: New state
            ip_address: Client IP
            user_agent: Client user agent

        Returns:
            Created audit log entry
        """
        audit = AuditLog(
            actor=actor,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            old_values=old_values,
            new_values=new_values,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(audit)
        return audit

    async def log_booking_action(
        self,
        db: AsyncSession,
        actor: str,
        action: str,
        booking: Any,
        old_values: dict[str, Any] | None,
        extra: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Log a booking transition using tracked-field snapshots."""
        new_values = booking_snapshot(booking)
        if extra:
            new_values.update(extra)
        return await self.log_action(
            db=db,
            actor=actor,
            action=action,
            resource_type="booking",
            resource_id=booking.id,
            old_values=old_values,
            new_values=new_values,
        )

    async def list_for_booking(self, db: AsyncSession, booking_id: UUID) -> list[AuditLog]:
        result = await db.execute(
            select(AuditLog)
            .where(AuditLog.resource_type == "booking", AuditLog.resource_id == booking_id)
            .order_by(AuditLog.created_at)
        )
        return list(result.scalars().all())


audit_service = AuditService()
