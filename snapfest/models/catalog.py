"""Catalog database models: packages and à-la-carte Beat & Bloom services."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from snapfest.database import Base
from snapfest.domain.catalog import (
    PackageDefinition,
    feature_from_dict,
    option_from_dict,
)

JsonType = JSON().with_variant(JSONB(), "postgresql")


class Package(Base):
    """Event package with included features and paid customization options."""

    __tablename__ = "packages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(
        String(30), nullable=False
    )  # WEDDING, BIRTHDAY, BABY_SHOWER, DEMISE, HALDI_MEHNDI, CAR_DIGGI_CELEBRATION, CORPORATE
    description: Mapped[str | None] = mapped_column(Text)

    # Pricing (in paise)
    base_price: Mapped[int] = mapped_column(Integer, nullable=False)
    per_guest_price: Mapped[int] = mapped_column(Integer, default=0)

    # [{id, name, price, is_removable, is_required}]
    included_features: Mapped[list[dict]] = mapped_column(JsonType, default=list)
    # [{id, name, price, category, is_required, max_quantity}]
    customization_options: Mapped[list[dict]] = mapped_column(JsonType, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def to_definition(self) -> PackageDefinition:
        return PackageDefinition(
            id=str(self.id),
            title=self.title,
            category=self.category,
            base_price=self.base_price,
            per_guest_price=self.per_guest_price or 0,
            included_features=tuple(feature_from_dict(f) for f in self.included_features or []),
            customization_options=tuple(option_from_dict(o) for o in self.customization_options or []),
        )


class BeatBloom(Base):
    """Individual service sold à la carte (DJ, decor, photography...)."""

    __tablename__ = "beat_blooms"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(
        String(30), default="OTHER"
    )  # ENTERTAINMENT, DECOR, PHOTOGRAPHY, CATERING, LIGHTING, OTHER
    description: Mapped[str | None] = mapped_column(Text)
    price: Mapped[int] = mapped_column(Integer, nullable=False)  # in paise
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def to_definition(self) -> PackageDefinition:
        # Flat price: nothing bundled, nothing to add.
        return PackageDefinition(
            id=str(self.id),
            title=self.title,
            category=self.category,
            base_price=self.price,
        )
