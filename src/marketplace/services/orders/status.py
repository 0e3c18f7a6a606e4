"""Order lifecycle: allowed transitions, status writes and parent cascades."""

from __future__ import annotations

import logging
from typing import Optional

from ...errors import InvalidTransitionError, OrderNotFoundError
from ...models.domain import OrderStatus, ParentOrder, StatusHistoryRecord, Suborder
from ...persistence import registry
from ...persistence.store import MarketplaceStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PLACED: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset(
        {OrderStatus.READY_FOR_PICKUP, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED}
    ),
    OrderStatus.READY_FOR_PICKUP: frozenset({OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Display metadata shared with the storefront and dashboards.
STATUS_LABELS: dict[OrderStatus, dict[str, str]] = {
    OrderStatus.PLACED: {"label": "تم استلام الطلب", "color": "info", "icon": "ClipboardList"},
    OrderStatus.CONFIRMED: {"label": "تم تأكيد الطلب", "color": "primary", "icon": "CheckCircle"},
    OrderStatus.PREPARING: {"label": "جاري التجهيز", "color": "warning", "icon": "Package"},
    OrderStatus.READY_FOR_PICKUP: {"label": "جاهز للاستلام", "color": "info", "icon": "PackageCheck"},
    OrderStatus.OUT_FOR_DELIVERY: {"label": "في الطريق", "color": "accent", "icon": "Truck"},
    OrderStatus.DELIVERED: {"label": "تم التسليم", "color": "success", "icon": "CheckCircle2"},
    OrderStatus.CANCELLED: {"label": "تم الإلغاء", "color": "destructive", "icon": "XCircle"},
}


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


def _check_transition(current: OrderStatus, requested: OrderStatus) -> None:
    if not can_transition(current, requested):
        raise InvalidTransitionError(current.value, requested.value)


def update_status(
    order_id: str,
    new_status: OrderStatus,
    actor_id: Optional[str],
    notes: Optional[str] = None,
    *,
    store: MarketplaceStore | None = None,
) -> Suborder:
    """Move one suborder to ``new_status`` and record it in the history.

    The write is a compare-and-set on the status read here, so a change made
    concurrently by another actor is reported as an invalid transition rather
    than silently overwritten.
    """
    store = store or registry.get_store()
    new_status = OrderStatus(new_status)

    suborder = store.get_suborder(order_id)
    if suborder is None:
        raise OrderNotFoundError(f"Order {order_id} not found.")
    _check_transition(suborder.status, new_status)

    updated = store.apply_status_change(order_id, suborder.status, new_status, actor_id, notes)
    if updated is None:
        latest = store.get_suborder(order_id)
        current = latest.status if latest else suborder.status
        raise InvalidTransitionError(
            current.value,
            new_status.value,
            f"Order {order_id} changed status concurrently; it is now {current.value}.",
        )

    logger.info("Order %s: %s -> %s by %s", order_id, suborder.status.value, new_status.value, actor_id)
    return updated


def update_parent_status(
    parent_id: str,
    new_status: OrderStatus,
    actor_id: Optional[str],
    notes: Optional[str] = None,
    *,
    store: MarketplaceStore | None = None,
) -> ParentOrder:
    """Move a parent order and, for cascading statuses, its open suborders."""
    store = store or registry.get_store()
    new_status = OrderStatus(new_status)

    parent = store.get_parent_order(parent_id)
    if parent is None:
        raise OrderNotFoundError(f"Parent order {parent_id} not found.")
    _check_transition(parent.status, new_status)

    cascaded = len(parent.cascade_targets(new_status))
    updated = store.apply_parent_status_cascade(parent_id, parent.status, new_status, actor_id, notes)
    if updated is None:
        latest = store.get_parent_order(parent_id)
        current = latest.status if latest else parent.status
        raise InvalidTransitionError(
            current.value,
            new_status.value,
            f"Parent order {parent_id} changed status concurrently; it is now {current.value}.",
        )

    logger.info(
        "Parent order %s: %s -> %s by %s (%d suborders cascaded)",
        parent.order_number,
        parent.status.value,
        new_status.value,
        actor_id,
        cascaded,
    )
    return updated


def get_status_history(order_id: str, *, store: MarketplaceStore | None = None) -> list[StatusHistoryRecord]:
    store = store or registry.get_store()
    return store.list_status_history(order_id)
