"""Delivery settings schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..services.pricing.models import FallbackMode, RoundingRule


class DeliverySettingsModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    base_fee: float
    km_rate: float
    pickup_stop_fee: float
    min_fee: float
    max_fee: float
    rounding_rule: RoundingRule
    fixed_fallback_fee: float
    fallback_mode: FallbackMode
    max_shops_per_order: int
    platform_fee_fixed: float
    platform_fee_percent: float
    routing_algorithm: str
    return_to_customer: bool
    mapbox_profile: str
    updated_at: Optional[str] = None
    updated_by: Optional[str] = None


class DeliverySettingsUpdate(BaseModel):
    """Partial update; omitted fields keep their stored values."""

    actor_id: str
    base_fee: Optional[float] = Field(None, ge=0)
    km_rate: Optional[float] = Field(None, ge=0)
    pickup_stop_fee: Optional[float] = Field(None, ge=0)
    min_fee: Optional[float] = Field(None, ge=0)
    max_fee: Optional[float] = Field(None, ge=0)
    rounding_rule: Optional[RoundingRule] = None
    fixed_fallback_fee: Optional[float] = Field(None, ge=0)
    fallback_mode: Optional[FallbackMode] = None
    max_shops_per_order: Optional[int] = Field(None, ge=1)
    platform_fee_fixed: Optional[float] = Field(None, ge=0)
    platform_fee_percent: Optional[float] = Field(None, ge=0)
    return_to_customer: Optional[bool] = None
    mapbox_profile: Optional[str] = None

    def changes(self) -> dict:
        values = self.model_dump(exclude_unset=True, exclude={"actor_id"}, mode="json")
        return {key: value for key, value in values.items() if value is not None}
