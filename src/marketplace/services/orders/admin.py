"""Back-office views over parent orders: audit listing, driver overrides and courier earnings."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from ...errors import ValidationError
from ...models.domain import OrderStatus, ParentOrder
from ...persistence import registry
from ...persistence.store import MarketplaceStore
from ..pricing.fees import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(slots=True)
class ParentOrderPage:
    orders: list[ParentOrder]
    total: int
    page: int
    limit: int


@dataclass(slots=True)
class CourierSummary:
    driver_id: str
    total_earnings: float
    earnings_period: float
    delivered_count_lifetime: int
    delivered_count_period: int
    last_delivery_date: Optional[datetime]


@dataclass(slots=True)
class CourierDailyEarnings:
    day: date
    earnings: float
    delivered_count: int


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _check_range(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start is not None and end is not None and _as_aware(start) > _as_aware(end):
        raise ValidationError("Start date must not be after end date.")


def list_parent_orders(
    *,
    status: OrderStatus | str | None = None,
    driver_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    store: MarketplaceStore | None = None,
) -> ParentOrderPage:
    """Audit listing, newest first. ``status`` of ``"ALL"`` or ``None`` disables the filter."""
    if page < 1:
        raise ValidationError("Page must be 1 or greater.")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}.")
    _check_range(start, end)

    status_filter: Optional[OrderStatus] = None
    if status is not None and status != "ALL":
        try:
            status_filter = OrderStatus(status)
        except ValueError as exc:
            raise ValidationError(f"Unknown order status: {status}.") from exc

    store = store or registry.get_store()
    orders, total = store.list_parent_orders(
        status=status_filter,
        driver_id=driver_id,
        created_from=_as_aware(start) if start else None,
        created_to=_as_aware(end) if end else None,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return ParentOrderPage(orders=orders, total=total, page=page, limit=limit)


def set_driver(
    parent_id: str,
    driver_id: Optional[str],
    actor_id: str,
    *,
    store: MarketplaceStore | None = None,
) -> ParentOrder:
    """Reassign an open parent order to ``driver_id``, or unassign it when ``driver_id`` is None."""
    store = store or registry.get_store()
    parent = store.set_parent_driver(parent_id, driver_id)
    if driver_id is None:
        logger.info("Driver unassigned from parent order %s by %s", parent.order_number, actor_id)
    else:
        logger.info("Parent order %s reassigned to driver %s by %s", parent.order_number, driver_id, actor_id)
    return parent


def _in_period(order: ParentOrder, start: datetime, end: datetime) -> bool:
    return order.updated_at is not None and start <= _as_aware(order.updated_at) <= end


def get_couriers_summary(
    start: datetime,
    end: datetime,
    *,
    store: MarketplaceStore | None = None,
) -> list[CourierSummary]:
    """Lifetime and in-period delivery earnings per driver, highest period earnings first."""
    _check_range(start, end)
    start, end = _as_aware(start), _as_aware(end)
    store = store or registry.get_store()

    by_driver: dict[str, list[ParentOrder]] = defaultdict(list)
    for order in store.list_delivered_orders():
        by_driver[order.delivery_user_id].append(order)

    summaries = []
    for driver_id, orders in by_driver.items():
        in_period = [order for order in orders if _in_period(order, start, end)]
        delivered_at = [_as_aware(order.updated_at) for order in orders if order.updated_at is not None]
        summaries.append(
            CourierSummary(
                driver_id=driver_id,
                total_earnings=round_half_up(sum(order.total_delivery_fee for order in orders), 2),
                earnings_period=round_half_up(sum(order.total_delivery_fee for order in in_period), 2),
                delivered_count_lifetime=len(orders),
                delivered_count_period=len(in_period),
                last_delivery_date=max(delivered_at) if delivered_at else None,
            )
        )
    summaries.sort(key=lambda summary: (-summary.earnings_period, summary.driver_id))
    return summaries


def get_courier_analytics(
    driver_id: str,
    start: datetime,
    end: datetime,
    *,
    store: MarketplaceStore | None = None,
) -> list[CourierDailyEarnings]:
    """Per-day (UTC) delivered count and earnings for one driver; days without deliveries are omitted."""
    _check_range(start, end)
    start, end = _as_aware(start), _as_aware(end)
    store = store or registry.get_store()

    fees: dict[date, list[float]] = defaultdict(list)
    for order in store.list_delivered_orders(driver_id):
        if _in_period(order, start, end):
            day = _as_aware(order.updated_at).astimezone(timezone.utc).date()
            fees[day].append(order.total_delivery_fee)

    return [
        CourierDailyEarnings(day=day, earnings=round_half_up(sum(values), 2), delivered_count=len(values))
        for day, values in sorted(fees.items())
    ]
