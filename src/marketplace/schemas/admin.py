"""Back-office audit and courier earnings schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from .orders import ParentOrderModel


class DriverOverrideRequest(BaseModel):
    """``driver_id`` of null unassigns the order."""

    driver_id: Optional[str] = None
    actor_id: str


class ParentOrderPageResponse(BaseModel):
    orders: List[ParentOrderModel]
    total: int
    page: int
    limit: int


class CourierSummaryModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    driver_id: str
    total_earnings: float
    earnings_period: float
    delivered_count_lifetime: int
    delivered_count_period: int
    last_delivery_date: Optional[datetime] = None


class CourierDailyEarningsModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: date
    earnings: float
    delivered_count: int
