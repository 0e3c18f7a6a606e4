"""Checkout endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...schemas.checkout import (
    CheckoutCommitResponse,
    CheckoutQuoteResponse,
    CheckoutRequestModel,
    CommittedSuborderModel,
)
from ...services.checkout import service as checkout_service
from ..errors import http_error

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post("/quote", response_model=CheckoutQuoteResponse, status_code=status.HTTP_200_OK)
def quote_checkout(payload: CheckoutRequestModel) -> CheckoutQuoteResponse:
    """Price and route a cart without persisting anything.

    Validation problems come back in ``errors`` with ``valid=false`` so the
    storefront can show all of them at once.
    """
    try:
        calculation = checkout_service.calculate_checkout(payload.to_domain())
    except Exception as exc:
        raise http_error(exc, "calculate checkout") from exc
    return CheckoutQuoteResponse.from_calculation(calculation)


@router.post("", response_model=CheckoutCommitResponse, status_code=status.HTTP_201_CREATED)
def commit_checkout(payload: CheckoutRequestModel) -> CheckoutCommitResponse:
    try:
        order, calculation = checkout_service.commit_checkout(payload.to_domain())
    except Exception as exc:
        raise http_error(exc, "place order") from exc

    return CheckoutCommitResponse(
        parent_order_id=order.id,
        order_number=order.order_number,
        status=order.status,
        subtotal=order.subtotal,
        total_delivery_fee=order.total_delivery_fee,
        platform_fee=order.platform_fee,
        total=order.total,
        is_fallback=calculation.is_fallback,
        fallback_warning=calculation.fallback_warning,
        suborders=[
            CommittedSuborderModel(
                id=suborder.id,
                order_number=suborder.order_number,
                shop_id=suborder.shop_id,
                pickup_sequence_index=suborder.pickup_sequence_index,
                subtotal=suborder.subtotal,
                status=suborder.status,
            )
            for suborder in order.suborders
        ],
    )
