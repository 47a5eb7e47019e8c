"""Catalog value objects consumed by validation and pricing.

These are immutable snapshots of a package as the booking engine sees it.
ORM rows convert into them via ``to_definition()``.
"""

from dataclasses import dataclass, field
from enum import Enum


class ServiceCategory(str, Enum):
    """Service categories shared by customization options and vendors."""

    PHOTOGRAPHY = "PHOTOGRAPHY"
    VIDEOGRAPHY = "VIDEOGRAPHY"
    DECORATION = "DECORATION"
    CATERING = "CATERING"
    ENTERTAINMENT = "ENTERTAINMENT"
    TRANSPORTATION = "TRANSPORTATION"
    VENUE = "VENUE"
    LIGHTING = "LIGHTING"
    SOUND = "SOUND"
    SECURITY = "SECURITY"
    OTHER = "OTHER"


@dataclass(frozen=True)
class IncludedFeature:
    """A package component bundled by default."""

    id: str
    name: str
    price: int = 0
    is_removable: bool = False
    is_required: bool = True

    @property
    def can_be_removed(self) -> bool:
        # Required wins over an editor-set removable flag.
        return self.is_removable and not self.is_required


@dataclass(frozen=True)
class CustomizationOption:
    """A paid add-on selectable up to ``max_quantity``."""

    id: str
    name: str
    price: int
    category: ServiceCategory = ServiceCategory.OTHER
    is_required: bool = False
    max_quantity: int = 1


@dataclass(frozen=True)
class PackageDefinition:
    """Immutable catalog record used to price a booking."""

    id: str
    title: str
    base_price: int
    per_guest_price: int = 0
    category: str | None = None
    included_features: tuple[IncludedFeature, ...] = field(default_factory=tuple)
    customization_options: tuple[CustomizationOption, ...] = field(default_factory=tuple)

    def feature(self, feature_id: str) -> IncludedFeature | None:
        for feature in self.included_features:
            if feature.id == feature_id:
                return feature
        return None

    def option(self, option_id: str) -> CustomizationOption | None:
        for option in self.customization_options:
            if option.id == option_id:
                return option
        return None

    @property
    def required_options(self) -> tuple[CustomizationOption, ...]:
        return tuple(o for o in self.customization_options if o.is_required)


def feature_from_dict(data: dict) -> IncludedFeature:
    """Build a feature from its stored JSON form."""
    return IncludedFeature(
        id=str(data["id"]),
        name=data["name"],
        price=int(data.get("price", 0)),
        is_removable=bool(data.get("is_removable", False)),
        is_required=bool(data.get("is_required", True)),
    )


def option_from_dict(data: dict) -> CustomizationOption:
    """Build a customization option from its stored JSON form."""
    category = data.get("category") or ServiceCategory.OTHER.value
    try:
        category = ServiceCategory(category)
    except ValueError:
        category = ServiceCategory.OTHER
    return CustomizationOption(
        id=str(data["id"]),
        name=data["name"],
        price=int(data["price"]),
        category=category,
        is_required=bool(data.get("is_required", False)),
        max_quantity=int(data.get("max_quantity", 1)),
    )
