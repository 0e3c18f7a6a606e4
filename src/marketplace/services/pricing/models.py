"""Delivery pricing policy and fee breakdown models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional


class RoundingRule(str, Enum):
    NEAREST_INT = "nearest_int"
    NEAREST_0_5 = "nearest_0_5"
    CEIL_INT = "ceil_int"


class FallbackMode(str, Enum):
    BLOCK_CHECKOUT = "block_checkout"
    USE_FALLBACK_FEE = "use_fallback_fee"


# Older settings rows store the fallback mode as "fixed_fee".
_FALLBACK_MODE_ALIASES = {"fixed_fee": FallbackMode.USE_FALLBACK_FEE}

EDITABLE_FIELDS = frozenset(
    {
        "base_fee",
        "km_rate",
        "pickup_stop_fee",
        "min_fee",
        "max_fee",
        "rounding_rule",
        "fixed_fallback_fee",
        "fallback_mode",
        "max_shops_per_order",
        "platform_fee_fixed",
        "platform_fee_percent",
        "return_to_customer",
        "mapbox_profile",
    }
)

_MONEY_FIELDS = (
    "base_fee",
    "km_rate",
    "pickup_stop_fee",
    "min_fee",
    "max_fee",
    "fixed_fallback_fee",
    "platform_fee_fixed",
    "platform_fee_percent",
)


@dataclass(frozen=True, slots=True)
class DeliverySettings:
    """Immutable snapshot of the single delivery-settings row."""

    base_fee: float
    km_rate: float
    pickup_stop_fee: float
    min_fee: float
    max_fee: float
    rounding_rule: RoundingRule
    fixed_fallback_fee: float
    fallback_mode: FallbackMode
    max_shops_per_order: int
    platform_fee_fixed: float = 0.0
    platform_fee_percent: float = 0.0
    routing_algorithm: str = "nearest_neighbor"
    return_to_customer: bool = True
    mapbox_profile: str = "driving"
    updated_at: Optional[str] = None
    updated_by: Optional[str] = None

    def __post_init__(self) -> None:
        for name in _MONEY_FIELDS:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative.")
        if self.min_fee > self.max_fee:
            raise ValueError("min_fee must not exceed max_fee.")
        if self.max_shops_per_order < 1:
            raise ValueError("max_shops_per_order must be at least 1.")

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "DeliverySettings":
        """Build a snapshot from a stored row, ignoring unknown columns (id, etc.)."""
        known = {field.name for field in fields(cls)}
        values = {key: value for key, value in row.items() if key in known}
        for name in _MONEY_FIELDS:
            if name in values and values[name] is not None:
                values[name] = float(values[name])
        if "max_shops_per_order" in values:
            values["max_shops_per_order"] = int(values["max_shops_per_order"])
        if "rounding_rule" in values:
            values["rounding_rule"] = RoundingRule(values["rounding_rule"])
        if "fallback_mode" in values:
            raw_mode = values["fallback_mode"]
            values["fallback_mode"] = _FALLBACK_MODE_ALIASES.get(raw_mode) or FallbackMode(raw_mode)
        if isinstance(values.get("updated_at"), datetime):
            values["updated_at"] = values["updated_at"].isoformat()
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["rounding_rule"] = self.rounding_rule.value
        data["fallback_mode"] = self.fallback_mode.value
        return data


@dataclass(frozen=True, slots=True)
class DeliveryFeeBreakdown:
    base_fee: float
    km_component: float
    stops_component: float
    subtotal_fee: float
    final_fee: float
    total_km: float
    total_minutes: int
    shops_count: int
    settings_used: DeliverySettings
    is_fallback: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_fee": self.base_fee,
            "km_component": self.km_component,
            "stops_component": self.stops_component,
            "subtotal_fee": self.subtotal_fee,
            "final_fee": self.final_fee,
            "total_km": self.total_km,
            "total_minutes": self.total_minutes,
            "shops_count": self.shops_count,
            "is_fallback": self.is_fallback,
            "settings_used": self.settings_used.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class FallbackFee:
    fee: float
    warning: str
    is_fallback: bool = True
