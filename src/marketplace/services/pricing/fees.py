"""Delivery and platform fee calculation."""

from __future__ import annotations

from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

from ..routing.models import RoutePlan
from .models import DeliveryFeeBreakdown, DeliverySettings, FallbackFee, RoundingRule

FALLBACK_WARNING = (
    "The delivery fee was estimated because route calculation is temporarily unavailable. "
    "The fee shown is final."
)


def _decimal(value: float) -> Decimal:
    # str() keeps the shortest repr so 10.3 stays 10.3 instead of 10.2999...
    return Decimal(str(value))


def round_half_up(value: float, places: int = 2) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def apply_rounding(value: float, rule: RoundingRule) -> float:
    amount = _decimal(value)
    if rule is RoundingRule.NEAREST_0_5:
        doubled = (amount * 2).quantize(Decimal(1), rounding=ROUND_HALF_UP)
        return float(doubled / 2)
    if rule is RoundingRule.CEIL_INT:
        return float(amount.quantize(Decimal(1), rounding=ROUND_CEILING))
    return float(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def calculate_delivery_fee(
    route: RoutePlan,
    shops_count: int,
    settings: DeliverySettings,
) -> DeliveryFeeBreakdown:
    """Price ``route`` under ``settings``; the first pickup is covered by the base fee."""
    km_component = route.total_km * settings.km_rate
    stops_component = max(0, shops_count - 1) * settings.pickup_stop_fee
    subtotal = settings.base_fee + km_component + stops_component
    final_fee = apply_rounding(
        clamp(subtotal, settings.min_fee, settings.max_fee),
        settings.rounding_rule,
    )

    return DeliveryFeeBreakdown(
        base_fee=settings.base_fee,
        km_component=round_half_up(km_component, 2),
        stops_component=stops_component,
        subtotal_fee=round_half_up(subtotal, 2),
        final_fee=final_fee,
        total_km=route.total_km,
        total_minutes=route.total_minutes,
        shops_count=shops_count,
        settings_used=settings,
    )


def calculate_fallback_fee(settings: DeliverySettings) -> FallbackFee:
    return FallbackFee(fee=settings.fixed_fallback_fee, warning=FALLBACK_WARNING)


def fallback_breakdown(settings: DeliverySettings, shops_count: int) -> DeliveryFeeBreakdown:
    """Flat-fee breakdown with no distance or stop components."""
    fallback = calculate_fallback_fee(settings)
    return DeliveryFeeBreakdown(
        base_fee=fallback.fee,
        km_component=0.0,
        stops_component=0.0,
        subtotal_fee=fallback.fee,
        final_fee=fallback.fee,
        total_km=0.0,
        total_minutes=0,
        shops_count=shops_count,
        settings_used=settings,
        is_fallback=True,
    )


def calculate_platform_fee(subtotal: float, settings: DeliverySettings) -> float:
    raw = settings.platform_fee_fixed + subtotal * settings.platform_fee_percent / 100
    return round_half_up(raw, 2)
