"""In-process store used for local runs and tests.

Atomic units are applied to copies under a single re-entrant lock and swapped
in only when every step succeeded, so readers never observe a half-written
order graph.
"""

from __future__ import annotations

import copy
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from ..errors import CommitError, DriverAssignmentError, OrderNotFoundError, StoreError
from ..models.domain import OrderStatus, ParentOrder, Shop, StatusHistoryRecord, Suborder


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryStore:
    def __init__(
        self,
        settings_row: Optional[Mapping[str, Any]] = None,
        shops: Iterable[Shop] = (),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._lock = threading.RLock()
        self._clock = clock
        self._settings_row: Optional[dict[str, Any]] = dict(settings_row) if settings_row else None
        self._shops: dict[str, Shop] = {shop.id: shop for shop in shops}
        self._parents: dict[str, ParentOrder] = {}
        self._suborders: dict[str, Suborder] = {}
        self._history: list[StatusHistoryRecord] = []

    # settings -----------------------------------------------------------------

    def fetch_delivery_settings(self) -> dict[str, Any]:
        with self._lock:
            if self._settings_row is None:
                raise StoreError("delivery_settings row not found.")
            return dict(self._settings_row)

    def save_delivery_settings(self, values: Mapping[str, Any]) -> dict[str, Any]:
        with self._lock:
            row = dict(self._settings_row or {})
            row.update(values)
            self._settings_row = row
            return dict(row)

    # shops --------------------------------------------------------------------

    def add_shop(self, shop: Shop) -> None:
        with self._lock:
            self._shops[shop.id] = shop

    def fetch_shops(self, shop_ids: Sequence[str]) -> list[Shop]:
        with self._lock:
            return [copy.copy(self._shops[shop_id]) for shop_id in shop_ids if shop_id in self._shops]

    # orders -------------------------------------------------------------------

    def commit_order_graph(self, order: ParentOrder, actor_id: Optional[str]) -> ParentOrder:
        with self._lock:
            if order.id in self._parents:
                raise CommitError(f"Parent order {order.id} already exists.")
            duplicate = [sub.id for sub in order.suborders if sub.id in self._suborders]
            if duplicate:
                raise CommitError(f"Suborder ids already exist: {', '.join(duplicate)}.")

            now = self._clock()
            stored = copy.deepcopy(order)
            stored.created_at = stored.updated_at = now
            history = [
                StatusHistoryRecord(order_id=stored.id, status=stored.status, actor_id=actor_id, created_at=now)
            ]
            for suborder in stored.suborders:
                suborder.created_at = suborder.updated_at = now
                history.append(
                    StatusHistoryRecord(
                        order_id=suborder.id, status=suborder.status, actor_id=actor_id, created_at=now
                    )
                )

            self._parents[stored.id] = stored
            for suborder in stored.suborders:
                self._suborders[suborder.id] = suborder
            self._history.extend(history)
            return copy.deepcopy(stored)

    def get_suborder(self, order_id: str) -> Optional[Suborder]:
        with self._lock:
            suborder = self._suborders.get(order_id)
            return copy.deepcopy(suborder) if suborder else None

    def get_parent_order(self, parent_id: str) -> Optional[ParentOrder]:
        with self._lock:
            parent = self._parents.get(parent_id)
            return copy.deepcopy(parent) if parent else None

    def apply_status_change(
        self,
        order_id: str,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        actor_id: Optional[str],
        notes: Optional[str] = None,
    ) -> Optional[Suborder]:
        with self._lock:
            suborder = self._suborders.get(order_id)
            if suborder is None:
                raise OrderNotFoundError(f"Order {order_id} not found.")
            if suborder.status != expected_status:
                return None
            now = self._clock()
            suborder.status = new_status
            suborder.updated_at = now
            self._history.append(
                StatusHistoryRecord(
                    order_id=order_id, status=new_status, actor_id=actor_id, created_at=now, notes=notes
                )
            )
            return copy.deepcopy(suborder)

    def apply_parent_status_cascade(
        self,
        parent_id: str,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        actor_id: Optional[str],
        notes: Optional[str] = None,
    ) -> Optional[ParentOrder]:
        with self._lock:
            parent = self._parents.get(parent_id)
            if parent is None:
                raise OrderNotFoundError(f"Parent order {parent_id} not found.")
            if parent.status != expected_status:
                return None

            now = self._clock()
            targets = parent.cascade_targets(new_status)
            cascade_note = f"Cascaded from parent order {parent.order_number}"
            history = [
                StatusHistoryRecord(
                    order_id=parent_id, status=new_status, actor_id=actor_id, created_at=now, notes=notes
                )
            ]
            history.extend(
                StatusHistoryRecord(
                    order_id=suborder.id,
                    status=new_status,
                    actor_id=actor_id,
                    created_at=now,
                    notes=cascade_note,
                )
                for suborder in targets
            )

            parent.status = new_status
            parent.updated_at = now
            for suborder in targets:
                suborder.status = new_status
                suborder.updated_at = now
            self._history.extend(history)
            return copy.deepcopy(parent)

    def list_status_history(self, order_id: str) -> list[StatusHistoryRecord]:
        with self._lock:
            return sorted(
                (record for record in self._history if record.order_id == order_id),
                key=lambda record: record.created_at,
            )

    def assign_driver(self, parent_id: str, driver_id: str) -> ParentOrder:
        with self._lock:
            parent = self._parents.get(parent_id)
            if parent is None:
                raise OrderNotFoundError(f"Parent order {parent_id} not found.")
            if parent.status.is_terminal:
                raise DriverAssignmentError(f"Order {parent.order_number} is already {parent.status.value}.")
            if parent.delivery_user_id and parent.delivery_user_id != driver_id:
                raise DriverAssignmentError(
                    f"Order {parent.order_number} is already assigned to another driver."
                )
            parent.delivery_user_id = driver_id
            parent.updated_at = self._clock()
            return copy.deepcopy(parent)

    def list_parent_orders_for_driver(self, driver_id: str, *, terminal: bool) -> list[ParentOrder]:
        with self._lock:
            matches = [
                parent
                for parent in self._parents.values()
                if parent.delivery_user_id == driver_id and parent.status.is_terminal == terminal
            ]
            if terminal:
                matches.sort(key=lambda parent: parent.updated_at, reverse=True)
            else:
                matches.sort(key=lambda parent: parent.created_at, reverse=True)
            return copy.deepcopy(matches)

    def set_parent_driver(self, parent_id: str, driver_id: Optional[str]) -> ParentOrder:
        with self._lock:
            parent = self._parents.get(parent_id)
            if parent is None:
                raise OrderNotFoundError(f"Parent order {parent_id} not found.")
            if parent.status.is_terminal:
                raise DriverAssignmentError(f"Order {parent.order_number} is already {parent.status.value}.")
            parent.delivery_user_id = driver_id
            parent.updated_at = self._clock()
            return copy.deepcopy(parent)

    def list_parent_orders(
        self,
        *,
        status: Optional[OrderStatus] = None,
        driver_id: Optional[str] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[ParentOrder], int]:
        with self._lock:
            matches = [
                parent
                for parent in self._parents.values()
                if (status is None or parent.status == status)
                and (driver_id is None or parent.delivery_user_id == driver_id)
                and (created_from is None or parent.created_at >= created_from)
                and (created_to is None or parent.created_at <= created_to)
            ]
            matches.sort(key=lambda parent: parent.created_at, reverse=True)
            return copy.deepcopy(matches[offset : offset + limit]), len(matches)

    def list_delivered_orders(self, driver_id: Optional[str] = None) -> list[ParentOrder]:
        with self._lock:
            return copy.deepcopy(
                [
                    parent
                    for parent in self._parents.values()
                    if parent.status is OrderStatus.DELIVERED
                    and parent.delivery_user_id is not None
                    and (driver_id is None or parent.delivery_user_id == driver_id)
                ]
            )
