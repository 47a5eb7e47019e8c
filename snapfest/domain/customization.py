"""Customization selection schema and validator.

A selection is validated against the package catalog before it reaches the
pricing engine. Every violation is collected so the caller can report all of
them in one response.
"""

from dataclasses import dataclass, field
from typing import Any

from snapfest.core.exceptions import ValidationError
from snapfest.domain.catalog import PackageDefinition

SCHEMA_VERSION = 1


@dataclass(frozen=True)
class SelectedOption:
    """An add-on chosen for a booking with price and name captured at selection time."""

    quantity: int
    captured_price: int
    captured_name: str

    @property
    def line_total(self) -> int:
        return self.captured_price * self.quantity


@dataclass(frozen=True)
class CustomizationSelection:
    """Validated per-booking customization."""

    selected_options: dict[str, SelectedOption] = field(default_factory=dict)
    removed_feature_ids: frozenset[str] = field(default_factory=frozenset)
    schema_version: int = SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "selected_options": {
                option_id: {
                    "quantity": selected.quantity,
                    "captured_price": selected.captured_price,
                    "captured_name": selected.captured_name,
                }
                for option_id, selected in sorted(self.selected_options.items())
            },
            "removed_feature_ids": sorted(self.removed_feature_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "CustomizationSelection":
        if not data:
            return cls()
        return cls(
            selected_options={
                option_id: SelectedOption(
                    quantity=int(item["quantity"]),
                    captured_price=int(item["captured_price"]),
                    captured_name=item["captured_name"],
                )
                for option_id, item in data.get("selected_options", {}).items()
            },
            removed_feature_ids=frozenset(data.get("removed_feature_ids", [])),
            schema_version=int(data.get("schema_version", SCHEMA_VERSION)),
        )


@dataclass(frozen=True)
class CustomizationRequest:
    """Raw customization intent as submitted by a client: quantities only, no prices."""

    selected_options: dict[str, Any] = field(default_factory=dict)
    removed_feature_ids: tuple[str, ...] = ()


def _error(field_name: str, code: str, message: str, ref: str | None = None) -> dict[str, Any]:
    error = {"field": field_name, "code": code, "message": message}
    if ref is not None:
        error["id"] = ref
    return error


def collect_customization_errors(
    package: PackageDefinition,
    request: CustomizationRequest,
) -> list[dict[str, Any]]:
    """Return every rule violation in ``request``; empty when valid."""
    errors: list[dict[str, Any]] = []

    for option_id, quantity in request.selected_options.items():
        option = package.option(option_id)
        if option is None:
            errors.append(
                _error("selected_options", "UNKNOWN_OPTION", f"Unknown customization option '{option_id}'", option_id)
            )
            continue
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            errors.append(
                _error("selected_options", "INVALID_QUANTITY", f"Quantity for '{option.name}' must be an integer", option_id)
            )
            continue
        if quantity < 1 or quantity > option.max_quantity:
            errors.append(
                _error(
                    "selected_options",
                    "QUANTITY_OUT_OF_RANGE",
                    f"Quantity for '{option.name}' must be between 1 and {option.max_quantity}",
                    option_id,
                )
            )

    # A present-but-invalid quantity is already reported above.
    for option in package.required_options:
        if option.id not in request.selected_options:
            errors.append(
                _error("selected_options", "REQUIRED_OPTION_MISSING", f"'{option.name}' is required", option.id)
            )

    for feature_id in request.removed_feature_ids:
        feature = package.feature(feature_id)
        if feature is None:
            errors.append(
                _error("removed_feature_ids", "UNKNOWN_FEATURE", f"Unknown included feature '{feature_id}'", feature_id)
            )
        elif feature.is_required:
            errors.append(
                _error("removed_feature_ids", "FEATURE_REQUIRED", f"'{feature.name}' is required and cannot be removed", feature_id)
            )
        elif not feature.is_removable:
            errors.append(
                _error("removed_feature_ids", "FEATURE_NOT_REMOVABLE", f"'{feature.name}' cannot be removed", feature_id)
            )

    for ref in sorted(set(request.selected_options) & set(request.removed_feature_ids)):
        errors.append(
            _error("removed_feature_ids", "ADDED_AND_REMOVED", f"'{ref}' cannot be both added and removed", ref)
        )

    return errors


def validate_customization(
    package: PackageDefinition,
    request: CustomizationRequest,
) -> CustomizationSelection:
    """Validate ``request`` against ``package`` and capture price snapshots.

    Raises:
        ValidationError: carrying every violation found
    """
    errors = collect_customization_errors(package, request)
    if errors:
        raise ValidationError("Invalid customization", errors=errors)

    selected = {}
    for option_id, quantity in request.selected_options.items():
        option = package.option(option_id)
        selected[option_id] = SelectedOption(
            quantity=quantity,
            captured_price=option.price,
            captured_name=option.name,
        )

    return CustomizationSelection(
        selected_options=selected,
        removed_feature_ids=frozenset(request.removed_feature_ids),
    )
