"""Pricing engine and customization validation."""

from decimal import Decimal

import pytest

from snapfest.core.exceptions import ValidationError
from snapfest.domain.catalog import PackageDefinition, feature_from_dict, option_from_dict
from snapfest.domain.customization import (
    CustomizationRequest,
    CustomizationSelection,
    validate_customization,
)
from snapfest.domain.pricing import clamp_guests, price, round_half_up
from tests.factories import package_kwargs


def definition(**overrides) -> PackageDefinition:
    data = package_kwargs(**overrides)
    return PackageDefinition(
        id="pkg",
        title=data["title"],
        base_price=data["base_price"],
        per_guest_price=data["per_guest_price"],
        included_features=tuple(feature_from_dict(f) for f in data["included_features"]),
        customization_options=tuple(option_from_dict(o) for o in data["customization_options"]),
    )


def error_codes(exc: ValidationError) -> list[str]:
    return [e["code"] for e in exc.errors]


class TestPrice:
    """Tests for the pricing engine."""

    def test_add_on_pricing(self):
        """Two DJ slots for ten guests price to 9440."""
        package = definition()
        selection = validate_customization(package, CustomizationRequest(selected_options={"dj": 2}))

        breakdown = price(package, 10, selection)

        assert breakdown.subtotal == 7000
        assert breakdown.add_ons_total == 1000
        assert breakdown.removed_discount == 0
        assert breakdown.taxable_amount == 8000
        assert breakdown.tax == 1440
        assert breakdown.total == 9440

    def test_removed_feature_discount(self):
        """Removing a removable feature discounts its price before tax."""
        package = definition()
        selection = validate_customization(package, CustomizationRequest(removed_feature_ids=("decor",)))

        breakdown = price(package, 10, selection)

        assert breakdown.removed_discount == 1500
        assert breakdown.taxable_amount == 5500
        assert breakdown.tax == 990
        assert breakdown.total == 6490

    def test_required_feature_is_never_discounted(self):
        """A feature flagged both required and removable keeps its price."""
        package = definition(
            included_features=[
                {"id": "stage", "name": "Stage", "price": 2000, "is_removable": True, "is_required": True}
            ]
        )
        selection = CustomizationSelection(removed_feature_ids=frozenset({"stage"}))

        breakdown = price(package, 10, selection)

        assert breakdown.removed_discount == 0
        assert breakdown.total == 8260

    def test_travel_fee_is_taxed(self):
        """Travel fee joins the taxable amount."""
        package = definition()
        breakdown = price(package, 1, CustomizationSelection(), travel_fee=800)

        assert breakdown.taxable_amount == 5000 + 200 + 800
        assert breakdown.tax == 1080
        assert breakdown.total == 7080

    def test_tax_rounds_half_up(self):
        """Fractional paise of tax round half away from zero."""
        package = definition(base_price=25, per_guest_price=0)
        breakdown = price(package, 1, CustomizationSelection())

        # 25 * 0.18 = 4.5
        assert breakdown.tax == 5
        assert breakdown.total == 30

    def test_uses_captured_option_prices(self):
        """A booking keeps the add-on price captured at selection time."""
        selection = validate_customization(definition(), CustomizationRequest(selected_options={"dj": 1}))
        repriced = definition(
            customization_options=[{"id": "dj", "name": "DJ", "price": 9999, "max_quantity": 3}]
        )

        breakdown = price(repriced, 1, selection)

        assert breakdown.add_ons_total == 500

    def test_price_is_deterministic(self):
        package = definition()
        selection = validate_customization(package, CustomizationRequest(selected_options={"drone": 1}))
        assert price(package, 42, selection) == price(package, 42, selection)

    def test_round_half_up(self):
        assert round_half_up(Decimal("2.5")) == 3
        assert round_half_up(Decimal("2.4999")) == 2

    @pytest.mark.parametrize(("guests", "expected"), [(0, 1), (-5, 1), (1, 1), (500, 500), (1001, 1000)])
    def test_clamp_guests(self, guests, expected):
        assert clamp_guests(guests) == expected


class TestCustomizationValidation:
    """Tests for customization validation."""

    def test_collects_every_violation(self):
        """All violations are reported together."""
        request = CustomizationRequest(
            selected_options={"karaoke": 1, "dj": 4, "drone": "two"},
            removed_feature_ids=("venue", "fireworks"),
        )

        with pytest.raises(ValidationError) as exc_info:
            validate_customization(definition(), request)

        assert sorted(error_codes(exc_info.value)) == [
            "FEATURE_REQUIRED",
            "INVALID_QUANTITY",
            "QUANTITY_OUT_OF_RANGE",
            "UNKNOWN_FEATURE",
            "UNKNOWN_OPTION",
        ]

    def test_quantity_below_one_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_customization(definition(), CustomizationRequest(selected_options={"dj": 0}))
        assert error_codes(exc_info.value) == ["QUANTITY_OUT_OF_RANGE"]

    def test_feature_not_removable(self):
        package = definition(
            included_features=[
                {"id": "lights", "name": "Lights", "price": 700, "is_removable": False, "is_required": False}
            ]
        )
        with pytest.raises(ValidationError) as exc_info:
            validate_customization(package, CustomizationRequest(removed_feature_ids=("lights",)))
        assert error_codes(exc_info.value) == ["FEATURE_NOT_REMOVABLE"]

    def test_required_feature_cannot_be_removed_even_if_removable(self):
        package = definition(
            included_features=[
                {"id": "stage", "name": "Stage", "price": 2000, "is_removable": True, "is_required": True}
            ]
        )
        with pytest.raises(ValidationError) as exc_info:
            validate_customization(package, CustomizationRequest(removed_feature_ids=("stage",)))
        assert error_codes(exc_info.value) == ["FEATURE_REQUIRED"]

    def test_required_option_missing(self):
        package = definition(
            customization_options=[
                {"id": "mc", "name": "Host", "price": 900, "is_required": True, "max_quantity": 1}
            ]
        )
        with pytest.raises(ValidationError) as exc_info:
            validate_customization(package, CustomizationRequest())
        assert error_codes(exc_info.value) == ["REQUIRED_OPTION_MISSING"]

    def test_added_and_removed(self):
        package = definition(
            included_features=[
                {"id": "dj", "name": "House DJ", "price": 400, "is_removable": True, "is_required": False}
            ]
        )
        request = CustomizationRequest(selected_options={"dj": 1}, removed_feature_ids=("dj",))
        with pytest.raises(ValidationError) as exc_info:
            validate_customization(package, request)
        assert "ADDED_AND_REMOVED" in error_codes(exc_info.value)

    def test_captures_name_and_price(self):
        selection = validate_customization(definition(), CustomizationRequest(selected_options={"drone": 1}))

        selected = selection.selected_options["drone"]
        assert selected.captured_price == 2500
        assert selected.captured_name == "Drone shoot"
        assert selection.to_dict()["selected_options"]["drone"]["quantity"] == 1

    def test_selection_survives_storage(self):
        selection = validate_customization(
            definition(),
            CustomizationRequest(selected_options={"dj": 2}, removed_feature_ids=("decor",)),
        )
        assert CustomizationSelection.from_dict(selection.to_dict()) == selection
