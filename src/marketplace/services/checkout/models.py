"""Checkout request and draft models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from ...models.domain import CartLine, OrderItem
from ..pricing.models import DeliveryFeeBreakdown
from ..routing.models import RoutePlan


@dataclass(slots=True)
class CheckoutRequest:
    user_id: str
    cart_lines: List[CartLine]
    delivery_latitude: Optional[float]
    delivery_longitude: Optional[float]
    delivery_address: str
    customer_name: str
    customer_phone: str
    notes: Optional[str] = None
    # Total the client displayed; informational only, never used for pricing.
    quoted_total: Optional[float] = None


@dataclass(slots=True)
class SuborderDraft:
    shop_id: str
    shop_name: str
    pickup_sequence_index: int
    subtotal: float
    items: List[OrderItem]
    delivery_fee: float = 0.0


@dataclass(slots=True)
class ParentOrderDraft:
    user_id: str
    customer_name: str
    customer_phone: str
    delivery_address: str
    delivery_latitude: float
    delivery_longitude: float
    delivery_notes: Optional[str]
    subtotal: float
    total_delivery_fee: float
    platform_fee: float
    total: float
    route_km: float
    route_minutes: int
    pickup_sequence: List[int]
    delivery_fee_breakdown: dict[str, Any]
    delivery_settings_snapshot: dict[str, Any]
    is_fallback_fee: bool = False


@dataclass(slots=True)
class CheckoutCalculation:
    parent_order_draft: Optional[ParentOrderDraft] = None
    suborder_drafts: List[SuborderDraft] = field(default_factory=list)
    fee_breakdown: Optional[DeliveryFeeBreakdown] = None
    route_plan: Optional[RoutePlan] = None
    errors: List[str] = field(default_factory=list)
    is_fallback: bool = False
    fallback_warning: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return not self.errors and self.parent_order_draft is not None
