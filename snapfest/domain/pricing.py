"""Pricing engine.

Pure function from (package, guests, customization, travel fee) to a
breakdown in paise. No I/O; the selection is assumed to be validated.
"""

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal

from snapfest.domain.catalog import PackageDefinition
from snapfest.domain.customization import CustomizationSelection

TAX_RATE = Decimal("0.18")  # GST
MIN_GUESTS = 1
MAX_GUESTS = 1000


@dataclass(frozen=True)
class PriceBreakdown:
    """Monetary breakdown of a booking, all values in paise."""

    subtotal: int
    add_ons_total: int
    removed_discount: int
    travel_fee: int
    taxable_amount: int
    tax: int
    total: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def round_half_up(value: Decimal) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_tax(taxable_amount: int) -> int:
    return round_half_up(Decimal(taxable_amount) * TAX_RATE)


def clamp_guests(guests: int) -> int:
    """Clamp a guest count into the bookable range."""
    return max(MIN_GUESTS, min(MAX_GUESTS, guests))


def price(
    package: PackageDefinition,
    guests: int,
    customization: CustomizationSelection,
    travel_fee: int = 0,
) -> PriceBreakdown:
    """Price a customized package booking.

    Args:
        package: Catalog definition
        guests: Guest count, already within [MIN_GUESTS, MAX_GUESTS]
        customization: Validated selection with captured option prices
        travel_fee: Travel fee in paise

    Returns:
        PriceBreakdown: Deterministic breakdown
    """
    assert MIN_GUESTS <= guests <= MAX_GUESTS, f"guests out of range: {guests}"

    subtotal = package.base_price + package.per_guest_price * guests
    add_ons_total = sum(selected.line_total for selected in customization.selected_options.values())

    removed_discount = 0
    for feature_id in sorted(customization.removed_feature_ids):
        feature = package.feature(feature_id)
        if feature is not None and feature.can_be_removed:
            removed_discount += feature.price

    taxable_amount = subtotal + add_ons_total - removed_discount + travel_fee
    tax = calculate_tax(taxable_amount)

    return PriceBreakdown(
        subtotal=subtotal,
        add_ons_total=add_ons_total,
        removed_discount=removed_discount,
        travel_fee=travel_fee,
        taxable_amount=taxable_amount,
        tax=tax,
        total=taxable_amount + tax,
    )
