"""Vendor database model."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import JSON, Boolean, DateTime, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from snapfest.database import Base


class VendorAvailability(str, Enum):
    AVAILABLE = "AVAILABLE"
    BUSY = "BUSY"
    UNAVAILABLE = "UNAVAILABLE"


class Vendor(Base):
    """Service provider assignable to bookings.

    Availability is maintained outside the booking engine.
    """

    __tablename__ = "vendors"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(20))

    services_offered: Mapped[list[str]] = mapped_column(JSON, default=list)  # ServiceCategory values
    availability: Mapped[str] = mapped_column(
        String(20), default=VendorAvailability.AVAILABLE.value
    )
    rating: Mapped[Decimal] = mapped_column(Numeric(2, 1), default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
