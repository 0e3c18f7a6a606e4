"""Checkout request/response schemas."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.domain import CartLine, OrderStatus
from ..services.checkout.models import CheckoutCalculation, CheckoutRequest


class CartLineModel(BaseModel):
    product_id: str
    shop_id: str
    quantity: int
    unit_price: float
    product_name: str = ""
    product_image: Optional[str] = None


class CheckoutRequestModel(BaseModel):
    user_id: str
    cart_lines: List[CartLineModel] = Field(default_factory=list)
    delivery_latitude: Optional[float] = None
    delivery_longitude: Optional[float] = None
    delivery_address: str = ""
    customer_name: str = ""
    customer_phone: str = ""
    notes: Optional[str] = None
    quoted_total: Optional[float] = Field(
        default=None,
        description="Total shown to the customer. Logged on mismatch, never used for pricing.",
    )

    def to_domain(self) -> CheckoutRequest:
        return CheckoutRequest(
            user_id=self.user_id,
            cart_lines=[CartLine(**line.model_dump()) for line in self.cart_lines],
            delivery_latitude=self.delivery_latitude,
            delivery_longitude=self.delivery_longitude,
            delivery_address=self.delivery_address,
            customer_name=self.customer_name,
            customer_phone=self.customer_phone,
            notes=self.notes,
            quoted_total=self.quoted_total,
        )


class OrderItemModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    product_name: str
    product_image: Optional[str] = None
    quantity: int
    unit_price: float
    total_price: float


class RouteLegModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    from_index: int
    to_index: int
    from_type: str
    to_type: str
    distance_km: float
    duration_minutes: int


class RoutePlanModel(BaseModel):
    pickup_sequence: List[int]
    route_points: List[int]
    legs: List[RouteLegModel]
    total_km: float
    total_minutes: int


class SuborderDraftModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    shop_id: str
    shop_name: str
    pickup_sequence_index: int
    subtotal: float
    delivery_fee: float
    items: List[OrderItemModel]


class ParentOrderDraftModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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
    is_fallback_fee: bool


class CheckoutQuoteResponse(BaseModel):
    valid: bool
    errors: List[str]
    is_fallback: bool = False
    fallback_warning: Optional[str] = None
    parent_order: Optional[ParentOrderDraftModel] = None
    suborders: List[SuborderDraftModel] = Field(default_factory=list)
    route: Optional[RoutePlanModel] = None

    @classmethod
    def from_calculation(cls, calculation: CheckoutCalculation) -> "CheckoutQuoteResponse":
        draft = calculation.parent_order_draft
        return cls(
            valid=calculation.is_valid,
            errors=list(calculation.errors),
            is_fallback=calculation.is_fallback,
            fallback_warning=calculation.fallback_warning,
            parent_order=ParentOrderDraftModel.model_validate(draft, from_attributes=True) if draft else None,
            suborders=[
                SuborderDraftModel.model_validate(sub, from_attributes=True)
                for sub in calculation.suborder_drafts
            ],
            route=RoutePlanModel.model_validate(calculation.route_plan.to_dict())
            if calculation.route_plan
            else None,
        )


class CommittedSuborderModel(BaseModel):
    id: str
    order_number: str
    shop_id: str
    pickup_sequence_index: int
    subtotal: float
    status: OrderStatus


class CheckoutCommitResponse(BaseModel):
    parent_order_id: str
    order_number: str
    status: OrderStatus
    subtotal: float
    total_delivery_fee: float
    platform_fee: float
    total: float
    is_fallback: bool
    fallback_warning: Optional[str] = None
    suborders: List[CommittedSuborderModel]
