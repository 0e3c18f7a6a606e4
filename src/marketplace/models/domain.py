"""Domain models for shops, carts and the parent/suborder order graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class OrderStatus(str, Enum):
    PLACED = "PLACED"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# Parent transitions into these statuses are pushed down to every open suborder.
CASCADING_STATUSES = frozenset(
    {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED, OrderStatus.CANCELLED}
)


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A validated geo point. Build it through ``normalize_coordinate``."""

    latitude: float
    longitude: float


@dataclass(slots=True)
class Shop:
    """Participating shop as stored by the catalog (read-only here)."""

    id: str
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(slots=True)
class CartLine:
    product_id: str
    shop_id: str
    quantity: int
    unit_price: float
    product_name: str = ""
    product_image: Optional[str] = None

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


@dataclass(slots=True)
class OrderItem:
    product_id: str
    product_name: str
    quantity: int
    unit_price: float
    total_price: float
    product_image: Optional[str] = None


@dataclass(frozen=True, slots=True)
class StatusHistoryRecord:
    """Append-only audit entry written with every status change."""

    order_id: str
    status: OrderStatus
    actor_id: Optional[str]
    created_at: datetime
    notes: Optional[str] = None


@dataclass(slots=True)
class Suborder:
    """One shop's slice of a parent order. Delivery economics live on the parent."""

    id: str
    order_number: str
    parent_order_id: str
    shop_id: str
    items: list[OrderItem]
    subtotal: float
    pickup_sequence_index: int
    status: OrderStatus = OrderStatus.PLACED
    delivery_fee: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(slots=True)
class ParentOrder:
    """Aggregate root of a multi-shop order."""

    id: str
    order_number: str
    user_id: str
    customer_name: str
    customer_phone: str
    delivery_address: str
    delivery_latitude: float
    delivery_longitude: float
    subtotal: float
    total_delivery_fee: float
    platform_fee: float
    total: float
    route_km: float
    route_minutes: int
    pickup_sequence: list[int]
    delivery_fee_breakdown: dict[str, Any]
    delivery_settings_snapshot: dict[str, Any]
    status: OrderStatus = OrderStatus.PLACED
    delivery_notes: Optional[str] = None
    delivery_user_id: Optional[str] = None
    is_fallback_fee: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    suborders: list[Suborder] = field(default_factory=list)

    def cascade_targets(self, status: OrderStatus) -> list[Suborder]:
        """Suborders that must follow the parent into ``status``.

        Empty unless ``status`` is a cascading status; terminal suborders are
        never touched.
        """
        if status not in CASCADING_STATUSES:
            return []
        return [suborder for suborder in self.suborders if not suborder.status.is_terminal]
