"""Driver-facing views over parent orders."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ...models.domain import OrderStatus, ParentOrder
from ...persistence import registry
from ...persistence.store import MarketplaceStore
from ..pricing.fees import round_half_up

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DeliveryStats:
    driver_id: str
    period_start: datetime
    monthly_count: int
    monthly_earnings: float


def assign_driver(parent_id: str, driver_id: str, *, store: MarketplaceStore | None = None) -> ParentOrder:
    """Attach ``driver_id`` to a parent order without touching its status."""
    store = store or registry.get_store()
    parent = store.assign_driver(parent_id, driver_id)
    logger.info("Driver %s assigned to parent order %s", driver_id, parent.order_number)
    return parent


def get_active_orders(driver_id: str, *, store: MarketplaceStore | None = None) -> list[ParentOrder]:
    store = store or registry.get_store()
    return store.list_parent_orders_for_driver(driver_id, terminal=False)


def get_delivery_history(driver_id: str, *, store: MarketplaceStore | None = None) -> list[ParentOrder]:
    store = store or registry.get_store()
    return store.list_parent_orders_for_driver(driver_id, terminal=True)


def _month_start(now: datetime) -> datetime:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def get_delivery_stats(
    driver_id: str,
    now: Optional[datetime] = None,
    *,
    store: MarketplaceStore | None = None,
) -> DeliveryStats:
    """Deliveries completed since the first day of the current month and their fees."""
    store = store or registry.get_store()
    period_start = _month_start(now or datetime.now(timezone.utc))

    delivered = [
        parent
        for parent in store.list_parent_orders_for_driver(driver_id, terminal=True)
        if parent.status is OrderStatus.DELIVERED
        and parent.updated_at is not None
        and _as_aware(parent.updated_at) >= period_start
    ]
    return DeliveryStats(
        driver_id=driver_id,
        period_start=period_start,
        monthly_count=len(delivered),
        monthly_earnings=round_half_up(sum(parent.total_delivery_fee for parent in delivered), 2),
    )


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
