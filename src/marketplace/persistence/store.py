"""Durable store contract consumed by the settlement engine."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Protocol, Sequence

from ..models.domain import OrderStatus, ParentOrder, Shop, StatusHistoryRecord, Suborder


class MarketplaceStore(Protocol):
    """Every method that writes more than one record is a single atomic unit.

    Read failures and write failures raise ``StoreError`` (``CommitError`` for
    the order-graph commit). Compare-and-set methods return ``None`` when the
    stored status no longer matches ``expected_status``.
    """

    def fetch_delivery_settings(self) -> dict[str, Any]:
        ...

    def save_delivery_settings(self, values: Mapping[str, Any]) -> dict[str, Any]:
        ...

    def fetch_shops(self, shop_ids: Sequence[str]) -> list[Shop]:
        ...

    def commit_order_graph(self, order: ParentOrder, actor_id: Optional[str]) -> ParentOrder:
        """Persist parent, suborders, items and initial history records, or nothing."""
        ...

    def get_suborder(self, order_id: str) -> Optional[Suborder]:
        ...

    def get_parent_order(self, parent_id: str) -> Optional[ParentOrder]:
        ...

    def apply_status_change(
        self,
        order_id: str,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        actor_id: Optional[str],
        notes: Optional[str] = None,
    ) -> Optional[Suborder]:
        """Write the suborder status and its history record together."""
        ...

    def apply_parent_status_cascade(
        self,
        parent_id: str,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        actor_id: Optional[str],
        notes: Optional[str] = None,
    ) -> Optional[ParentOrder]:
        """Write the parent status, force-set its cascade targets, and record history for each."""
        ...

    def list_status_history(self, order_id: str) -> list[StatusHistoryRecord]:
        ...

    def assign_driver(self, parent_id: str, driver_id: str) -> ParentOrder:
        ...

    def list_parent_orders_for_driver(self, driver_id: str, *, terminal: bool) -> list[ParentOrder]:
        ...

    def set_parent_driver(self, parent_id: str, driver_id: Optional[str]) -> ParentOrder:
        """Admin override: replace or clear the driver of a non-terminal parent order."""
        ...

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
        """One page of parent orders, newest first, plus the total matching count."""
        ...

    def list_delivered_orders(self, driver_id: Optional[str] = None) -> list[ParentOrder]:
        """Delivered parent orders that have a driver, optionally for one driver."""
        ...
