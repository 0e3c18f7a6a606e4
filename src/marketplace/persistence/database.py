"""Supabase persistence for delivery settings, shops and the order graph.

Multi-record writes go through Postgres functions (see
``supabase/migrations``) so each one runs inside a single transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from ..db.supabase import get_supabase_client
from ..errors import CommitError, DriverAssignmentError, OrderNotFoundError, StoreError
from ..models.domain import (
    OrderItem,
    OrderStatus,
    ParentOrder,
    Shop,
    StatusHistoryRecord,
    Suborder,
)

logger = logging.getLogger(__name__)

SETTINGS_TABLE = "delivery_settings"
SHOPS_TABLE = "shops"
PARENT_ORDERS_TABLE = "parent_orders"
SUBORDERS_TABLE = "orders"
HISTORY_TABLE = "order_status_history"

SUBORDER_SELECT = "*, items:order_items(*)"


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _item_from_row(row: Mapping[str, Any]) -> OrderItem:
    return OrderItem(
        product_id=str(row["product_id"]),
        product_name=row.get("product_name") or "",
        quantity=int(row["quantity"]),
        unit_price=float(row["unit_price"]),
        total_price=float(row["total_price"]),
        product_image=row.get("product_image"),
    )


def _item_to_row(item: OrderItem) -> dict[str, Any]:
    return {
        "product_id": item.product_id,
        "product_name": item.product_name,
        "product_image": item.product_image,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "total_price": item.total_price,
    }


def suborder_from_row(row: Mapping[str, Any]) -> Suborder:
    return Suborder(
        id=str(row["id"]),
        order_number=row["order_number"],
        parent_order_id=str(row["parent_order_id"]),
        shop_id=str(row["shop_id"]),
        items=[_item_from_row(item) for item in row.get("items") or []],
        subtotal=float(row["subtotal"]),
        pickup_sequence_index=int(row.get("pickup_sequence_index") or 0),
        status=OrderStatus(row["status"]),
        delivery_fee=float(row.get("delivery_fee") or 0.0),
        created_at=_parse_datetime(row.get("created_at")),
        updated_at=_parse_datetime(row.get("updated_at")),
    )


def suborder_to_row(suborder: Suborder) -> dict[str, Any]:
    return {
        "id": suborder.id,
        "order_number": suborder.order_number,
        "parent_order_id": suborder.parent_order_id,
        "shop_id": suborder.shop_id,
        "subtotal": suborder.subtotal,
        "delivery_fee": suborder.delivery_fee,
        "total": suborder.subtotal,
        "pickup_sequence_index": suborder.pickup_sequence_index,
        "status": suborder.status.value,
        "items": [_item_to_row(item) for item in suborder.items],
    }


def parent_from_row(row: Mapping[str, Any], suborders: Sequence[Suborder] = ()) -> ParentOrder:
    return ParentOrder(
        id=str(row["id"]),
        order_number=row["order_number"],
        user_id=str(row["user_id"]),
        customer_name=row.get("customer_name") or "",
        customer_phone=row.get("customer_phone") or "",
        delivery_address=row.get("delivery_address") or "",
        delivery_latitude=float(row["delivery_latitude"]),
        delivery_longitude=float(row["delivery_longitude"]),
        subtotal=float(row["subtotal"]),
        total_delivery_fee=float(row["total_delivery_fee"]),
        platform_fee=float(row.get("platform_fee") or 0.0),
        total=float(row["total"]),
        route_km=float(row.get("route_km") or 0.0),
        route_minutes=int(row.get("route_minutes") or 0),
        pickup_sequence=list(row.get("pickup_sequence") or []),
        delivery_fee_breakdown=dict(row.get("delivery_fee_breakdown") or {}),
        delivery_settings_snapshot=dict(row.get("delivery_settings_snapshot") or {}),
        status=OrderStatus(row["status"]),
        delivery_notes=row.get("delivery_notes"),
        delivery_user_id=row.get("delivery_user_id"),
        is_fallback_fee=bool(row.get("is_fallback_fee")),
        created_at=_parse_datetime(row.get("created_at")),
        updated_at=_parse_datetime(row.get("updated_at")),
        suborders=list(suborders),
    )


def parent_to_row(order: ParentOrder) -> dict[str, Any]:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "user_id": order.user_id,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "delivery_address": order.delivery_address,
        "delivery_latitude": order.delivery_latitude,
        "delivery_longitude": order.delivery_longitude,
        "delivery_notes": order.delivery_notes,
        "subtotal": order.subtotal,
        "total_delivery_fee": order.total_delivery_fee,
        "platform_fee": order.platform_fee,
        "total": order.total,
        "route_km": order.route_km,
        "route_minutes": order.route_minutes,
        "pickup_sequence": order.pickup_sequence,
        "delivery_fee_breakdown": order.delivery_fee_breakdown,
        "delivery_settings_snapshot": order.delivery_settings_snapshot,
        "is_fallback_fee": order.is_fallback_fee,
        "status": order.status.value,
        "delivery_user_id": order.delivery_user_id,
    }


def history_from_row(row: Mapping[str, Any]) -> StatusHistoryRecord:
    return StatusHistoryRecord(
        order_id=str(row["order_id"]),
        status=OrderStatus(row["status"]),
        actor_id=row.get("created_by"),
        created_at=_parse_datetime(row["created_at"]),
        notes=row.get("notes"),
    )


class SupabaseStore:
    """``MarketplaceStore`` backed by Supabase tables and RPC functions."""

    def __init__(self, client: Any | None = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        client = self._client or get_supabase_client()
        if client is None:
            raise StoreError("Supabase is not configured. Set MKT_SUPABASE_URL and MKT_SUPABASE_KEY.")
        return client

    def _rpc(self, name: str, params: dict[str, Any]) -> Any:
        try:
            return self.client.rpc(name, params).execute().data
        except StoreError:
            raise
        except Exception as exc:
            logger.error("Supabase RPC %s failed: %s", name, exc)
            raise StoreError(f"Database call {name} failed.") from exc

    # settings -----------------------------------------------------------------

    def fetch_delivery_settings(self) -> dict[str, Any]:
        try:
            response = self.client.table(SETTINGS_TABLE).select("*").limit(1).execute()
        except StoreError:
            raise
        except Exception as exc:
            logger.error("Failed to load delivery settings: %s", exc)
            raise StoreError("Failed to load delivery settings.") from exc
        if not response.data:
            raise StoreError("delivery_settings row not found.")
        return dict(response.data[0])

    def save_delivery_settings(self, values: Mapping[str, Any]) -> dict[str, Any]:
        try:
            response = (
                self.client.table(SETTINGS_TABLE)
                .upsert({"id": True, **values})
                .execute()
            )
        except StoreError:
            raise
        except Exception as exc:
            logger.error("Failed to update delivery settings: %s", exc)
            raise StoreError("Failed to save delivery settings.") from exc
        if not response.data:
            raise StoreError("Delivery settings update returned no row.")
        return dict(response.data[0])

    # shops --------------------------------------------------------------------

    def fetch_shops(self, shop_ids: Sequence[str]) -> list[Shop]:
        if not shop_ids:
            return []
        try:
            response = (
                self.client.table(SHOPS_TABLE)
                .select("id, name, latitude, longitude")
                .in_("id", list(shop_ids))
                .execute()
            )
        except StoreError:
            raise
        except Exception as exc:
            logger.error("Failed to load shops %s: %s", list(shop_ids), exc)
            raise StoreError("Failed to load shop data.") from exc
        return [
            Shop(
                id=str(row["id"]),
                name=row.get("name") or str(row["id"]),
                latitude=row.get("latitude"),
                longitude=row.get("longitude"),
            )
            for row in response.data or []
        ]

    # orders -------------------------------------------------------------------

    def commit_order_graph(self, order: ParentOrder, actor_id: Optional[str]) -> ParentOrder:
        try:
            self._rpc(
                "create_multi_store_order",
                {
                    "p_parent": parent_to_row(order),
                    "p_suborders": [suborder_to_row(suborder) for suborder in order.suborders],
                    "p_actor_id": actor_id,
                },
            )
        except StoreError as exc:
            raise CommitError("Failed to create the order. Nothing was saved.") from exc

        # The graph is durable from here on; a failed reload must not read as a failed commit.
        try:
            committed = self.get_parent_order(order.id)
        except StoreError as exc:
            logger.warning("Order %s committed but could not be reloaded: %s", order.order_number, exc)
            return order
        if committed is None:
            logger.warning("Order %s committed but was not visible on reload", order.order_number)
            return order
        return committed

    def get_suborder(self, order_id: str) -> Optional[Suborder]:
        try:
            response = (
                self.client.table(SUBORDERS_TABLE).select(SUBORDER_SELECT).eq("id", order_id).limit(1).execute()
            )
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(f"Failed to load order {order_id}.") from exc
        if not response.data:
            return None
        return suborder_from_row(response.data[0])

    def get_parent_order(self, parent_id: str) -> Optional[ParentOrder]:
        try:
            parent_response = (
                self.client.table(PARENT_ORDERS_TABLE).select("*").eq("id", parent_id).limit(1).execute()
            )
            if not parent_response.data:
                return None
            suborders_response = (
                self.client.table(SUBORDERS_TABLE)
                .select(SUBORDER_SELECT)
                .eq("parent_order_id", parent_id)
                .order("pickup_sequence_index")
                .execute()
            )
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(f"Failed to load parent order {parent_id}.") from exc
        suborders = [suborder_from_row(row) for row in suborders_response.data or []]
        return parent_from_row(parent_response.data[0], suborders)

    def apply_status_change(
        self,
        order_id: str,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        actor_id: Optional[str],
        notes: Optional[str] = None,
    ) -> Optional[Suborder]:
        result = self._rpc(
            "apply_order_status_change",
            {
                "p_order_id": order_id,
                "p_expected_status": expected_status.value,
                "p_new_status": new_status.value,
                "p_actor_id": actor_id,
                "p_notes": notes,
            },
        )
        if not _rpc_flag(result, "found"):
            raise OrderNotFoundError(f"Order {order_id} not found.")
        if not _rpc_flag(result, "applied"):
            return None
        return self.get_suborder(order_id)

    def apply_parent_status_cascade(
        self,
        parent_id: str,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        actor_id: Optional[str],
        notes: Optional[str] = None,
    ) -> Optional[ParentOrder]:
        result = self._rpc(
            "cascade_parent_order_status",
            {
                "p_parent_id": parent_id,
                "p_expected_status": expected_status.value,
                "p_new_status": new_status.value,
                "p_actor_id": actor_id,
                "p_notes": notes,
            },
        )
        if not _rpc_flag(result, "found"):
            raise OrderNotFoundError(f"Parent order {parent_id} not found.")
        if not _rpc_flag(result, "applied"):
            return None
        return self.get_parent_order(parent_id)

    def list_status_history(self, order_id: str) -> list[StatusHistoryRecord]:
        try:
            response = (
                self.client.table(HISTORY_TABLE)
                .select("*")
                .eq("order_id", order_id)
                .order("created_at")
                .execute()
            )
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(f"Failed to load status history for {order_id}.") from exc
        return [history_from_row(row) for row in response.data or []]

    def assign_driver(self, parent_id: str, driver_id: str) -> ParentOrder:
        result = self._rpc(
            "assign_driver_to_parent",
            {"p_parent_order_id": parent_id, "p_driver_id": driver_id},
        )
        return self._driver_result(result, parent_id, "Failed to accept the order.")

    def set_parent_driver(self, parent_id: str, driver_id: Optional[str]) -> ParentOrder:
        result = self._rpc(
            "set_parent_order_driver",
            {"p_parent_order_id": parent_id, "p_driver_id": driver_id},
        )
        return self._driver_result(result, parent_id, "Failed to change the order driver.")

    def _driver_result(self, result: Any, parent_id: str, default_message: str) -> ParentOrder:
        if not _rpc_flag(result, "found"):
            raise OrderNotFoundError(f"Parent order {parent_id} not found.")
        if not _rpc_flag(result, "success"):
            raise DriverAssignmentError(_rpc_object(result).get("message") or default_message)
        parent = self.get_parent_order(parent_id)
        if parent is None:
            raise OrderNotFoundError(f"Parent order {parent_id} not found.")
        return parent

    def list_parent_orders_for_driver(self, driver_id: str, *, terminal: bool) -> list[ParentOrder]:
        terminal_values = [OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value]
        try:
            query = self.client.table(PARENT_ORDERS_TABLE).select("*").eq("delivery_user_id", driver_id)
            if terminal:
                query = query.in_("status", terminal_values).order("updated_at", desc=True)
            else:
                for value in terminal_values:
                    query = query.neq("status", value)
                query = query.order("created_at", desc=True)
            response = query.execute()
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(f"Failed to load orders for driver {driver_id}.") from exc
        return [parent_from_row(row) for row in response.data or []]

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
        try:
            query = self.client.table(PARENT_ORDERS_TABLE).select("*", count="exact")
            if status is not None:
                query = query.eq("status", status.value)
            if driver_id is not None:
                query = query.eq("delivery_user_id", driver_id)
            if created_from is not None:
                query = query.gte("created_at", created_from.isoformat())
            if created_to is not None:
                query = query.lte("created_at", created_to.isoformat())
            response = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        except StoreError:
            raise
        except Exception as exc:
            logger.error("Failed to list parent orders: %s", exc)
            raise StoreError("Failed to list parent orders.") from exc
        orders = [parent_from_row(row) for row in response.data or []]
        return orders, response.count or 0

    def list_delivered_orders(self, driver_id: Optional[str] = None) -> list[ParentOrder]:
        try:
            query = (
                self.client.table(PARENT_ORDERS_TABLE)
                .select("*")
                .eq("status", OrderStatus.DELIVERED.value)
                .not_.is_("delivery_user_id", "null")
            )
            if driver_id is not None:
                query = query.eq("delivery_user_id", driver_id)
            response = query.execute()
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError("Failed to load delivered orders.") from exc
        return [parent_from_row(row) for row in response.data or []]


def _rpc_object(result: Any) -> dict[str, Any]:
    # PostgREST returns a scalar json object, or a one-row list for set-returning functions.
    if isinstance(result, list):
        result = result[0] if result else {}
    return result if isinstance(result, dict) else {}


def _rpc_flag(result: Any, key: str) -> bool:
    return bool(_rpc_object(result).get(key))
