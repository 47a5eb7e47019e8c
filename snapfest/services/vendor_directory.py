"""Read-only vendor lookups for assignment."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from snapfest.models.vendor import Vendor, VendorAvailability


class VendorDirectory:
    """Vendor lookups; availability is owned by vendor management, not bookings."""

    async def get(self, db: AsyncSession, vendor_id: UUID) -> Vendor | None:
        result = await db.execute(select(Vendor).where(Vendor.id == vendor_id))
        return result.scalar_one_or_none()

    def is_available(self, vendor: Vendor) -> bool:
        return vendor.is_active and vendor.availability == VendorAvailability.AVAILABLE.value


vendor_directory = VendorDirectory()
