"""Order, status and driver schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.domain import OrderStatus
from .checkout import OrderItemModel


class StatusChangeRequest(BaseModel):
    status: OrderStatus
    actor_id: str
    notes: Optional[str] = None


class DriverAssignmentRequest(BaseModel):
    driver_id: str


class SuborderModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_number: str
    parent_order_id: str
    shop_id: str
    items: List[OrderItemModel]
    subtotal: float
    pickup_sequence_index: int
    status: OrderStatus
    status_label: str = ""
    delivery_fee: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ParentOrderModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_number: str
    user_id: str
    customer_name: str
    customer_phone: str
    delivery_address: str
    delivery_latitude: float
    delivery_longitude: float
    delivery_notes: Optional[str] = None
    subtotal: float
    total_delivery_fee: float
    platform_fee: float
    total: float
    route_km: float
    route_minutes: int
    pickup_sequence: List[int]
    delivery_fee_breakdown: Dict[str, Any]
    delivery_settings_snapshot: Dict[str, Any]
    status: OrderStatus
    status_label: str = ""
    delivery_user_id: Optional[str] = None
    is_fallback_fee: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    suborders: List[SuborderModel] = Field(default_factory=list)


class StatusHistoryModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: str
    status: OrderStatus
    actor_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


class DriverOrdersResponse(BaseModel):
    driver_id: str
    active: List[ParentOrderModel]
    history: List[ParentOrderModel]


class DeliveryStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    driver_id: str
    period_start: datetime
    monthly_count: int
    monthly_earnings: float
