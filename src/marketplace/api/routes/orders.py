"""Order lifecycle and driver endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...errors import OrderNotFoundError
from ...models.domain import ParentOrder, Suborder
from ...persistence import registry
from ...schemas.orders import (
    DeliveryStatsResponse,
    DriverAssignmentRequest,
    DriverOrdersResponse,
    ParentOrderModel,
    StatusChangeRequest,
    StatusHistoryModel,
    SuborderModel,
)
from ...services.orders import drivers
from ...services.orders import status as order_status
from ..errors import http_error

router = APIRouter(tags=["orders"])


def suborder_payload(suborder: Suborder) -> SuborderModel:
    model = SuborderModel.model_validate(suborder)
    model.status_label = order_status.STATUS_LABELS[suborder.status]["label"]
    return model


def parent_payload(parent: ParentOrder) -> ParentOrderModel:
    model = ParentOrderModel.model_validate(parent)
    model.status_label = order_status.STATUS_LABELS[parent.status]["label"]
    model.suborders = [suborder_payload(suborder) for suborder in parent.suborders]
    return model


@router.get("/orders/{order_id}", response_model=SuborderModel, status_code=status.HTTP_200_OK)
def get_order(order_id: str) -> SuborderModel:
    try:
        suborder = registry.get_store().get_suborder(order_id)
        if suborder is None:
            raise OrderNotFoundError(f"Order {order_id} not found.")
    except Exception as exc:
        raise http_error(exc, "load order") from exc
    return suborder_payload(suborder)


@router.post("/orders/{order_id}/status", response_model=SuborderModel, status_code=status.HTTP_200_OK)
def change_order_status(order_id: str, payload: StatusChangeRequest) -> SuborderModel:
    try:
        suborder = order_status.update_status(order_id, payload.status, payload.actor_id, payload.notes)
    except Exception as exc:
        raise http_error(exc, "update order status") from exc
    return suborder_payload(suborder)


@router.get(
    "/orders/{order_id}/history",
    response_model=list[StatusHistoryModel],
    status_code=status.HTTP_200_OK,
)
def get_order_history(order_id: str) -> list[StatusHistoryModel]:
    """Status history of a suborder or parent order, oldest first."""
    try:
        records = order_status.get_status_history(order_id)
    except Exception as exc:
        raise http_error(exc, "load status history") from exc
    return [StatusHistoryModel.model_validate(record) for record in records]


@router.get("/parent-orders/{parent_id}", response_model=ParentOrderModel, status_code=status.HTTP_200_OK)
def get_parent_order(parent_id: str) -> ParentOrderModel:
    try:
        parent = registry.get_store().get_parent_order(parent_id)
        if parent is None:
            raise OrderNotFoundError(f"Parent order {parent_id} not found.")
    except Exception as exc:
        raise http_error(exc, "load parent order") from exc
    return parent_payload(parent)


@router.post(
    "/parent-orders/{parent_id}/status",
    response_model=ParentOrderModel,
    status_code=status.HTTP_200_OK,
)
def change_parent_status(parent_id: str, payload: StatusChangeRequest) -> ParentOrderModel:
    try:
        parent = order_status.update_parent_status(parent_id, payload.status, payload.actor_id, payload.notes)
    except Exception as exc:
        raise http_error(exc, "update parent order status") from exc
    return parent_payload(parent)


@router.post(
    "/parent-orders/{parent_id}/driver",
    response_model=ParentOrderModel,
    status_code=status.HTTP_200_OK,
)
def assign_parent_driver(parent_id: str, payload: DriverAssignmentRequest) -> ParentOrderModel:
    try:
        parent = drivers.assign_driver(parent_id, payload.driver_id)
    except Exception as exc:
        raise http_error(exc, "assign driver") from exc
    return parent_payload(parent)


@router.get("/drivers/{driver_id}/orders", response_model=DriverOrdersResponse, status_code=status.HTTP_200_OK)
def get_driver_orders(driver_id: str) -> DriverOrdersResponse:
    try:
        active = drivers.get_active_orders(driver_id)
        history = drivers.get_delivery_history(driver_id)
    except Exception as exc:
        raise http_error(exc, "load driver orders") from exc
    return DriverOrdersResponse(
        driver_id=driver_id,
        active=[parent_payload(parent) for parent in active],
        history=[parent_payload(parent) for parent in history],
    )


@router.get("/drivers/{driver_id}/stats", response_model=DeliveryStatsResponse, status_code=status.HTTP_200_OK)
def get_driver_stats(driver_id: str) -> DeliveryStatsResponse:
    try:
        stats = drivers.get_delivery_stats(driver_id)
    except Exception as exc:
        raise http_error(exc, "load delivery stats") from exc
    return DeliveryStatsResponse.model_validate(stats)
