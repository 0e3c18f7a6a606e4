"""Back-office endpoints: parent order audit, driver overrides and courier earnings."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Query, status

from ...schemas.admin import (
    CourierDailyEarningsModel,
    CourierSummaryModel,
    DriverOverrideRequest,
    ParentOrderPageResponse,
)
from ...schemas.orders import ParentOrderModel
from ...services.orders import admin
from ..errors import http_error
from .orders import parent_payload

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/parent-orders", response_model=ParentOrderPageResponse, status_code=status.HTTP_200_OK)
def list_parent_orders(
    status_filter: str | None = Query(default=None, alias="status", description="Filter by status, or ALL"),
    driver_id: str | None = Query(default=None, description="Filter by assigned driver"),
    start: datetime | None = Query(default=None, description="Created at or after"),
    end: datetime | None = Query(default=None, description="Created at or before"),
    page: int = Query(default=1, description="1-based page number"),
    limit: int = Query(default=admin.DEFAULT_PAGE_SIZE, description="Page size"),
) -> ParentOrderPageResponse:
    try:
        result = admin.list_parent_orders(
            status=status_filter,
            driver_id=driver_id,
            start=start,
            end=end,
            page=page,
            limit=limit,
        )
    except Exception as exc:
        raise http_error(exc, "list parent orders") from exc
    return ParentOrderPageResponse(
        orders=[parent_payload(parent) for parent in result.orders],
        total=result.total,
        page=result.page,
        limit=result.limit,
    )


@router.put(
    "/parent-orders/{parent_id}/driver",
    response_model=ParentOrderModel,
    status_code=status.HTTP_200_OK,
)
def override_parent_driver(parent_id: str, payload: DriverOverrideRequest) -> ParentOrderModel:
    """Reassign or unassign the driver of an open parent order."""
    try:
        parent = admin.set_driver(parent_id, payload.driver_id, payload.actor_id)
    except Exception as exc:
        raise http_error(exc, "change order driver") from exc
    return parent_payload(parent)


@router.get("/couriers/summary", response_model=list[CourierSummaryModel], status_code=status.HTTP_200_OK)
def couriers_summary(
    start: datetime = Query(..., description="Period start"),
    end: datetime = Query(..., description="Period end"),
) -> list[CourierSummaryModel]:
    try:
        summaries = admin.get_couriers_summary(start, end)
    except Exception as exc:
        raise http_error(exc, "load courier summary") from exc
    return [CourierSummaryModel.model_validate(summary) for summary in summaries]


@router.get(
    "/couriers/{driver_id}/analytics",
    response_model=list[CourierDailyEarningsModel],
    status_code=status.HTTP_200_OK,
)
def courier_analytics(
    driver_id: str,
    start: datetime = Query(..., description="Period start"),
    end: datetime = Query(..., description="Period end"),
) -> list[CourierDailyEarningsModel]:
    try:
        days = admin.get_courier_analytics(driver_id, start, end)
    except Exception as exc:
        raise http_error(exc, "load courier analytics") from exc
    return [CourierDailyEarningsModel.model_validate(day) for day in days]
