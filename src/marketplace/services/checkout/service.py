"""Multi-store checkout orchestration.

Turns a cart spanning several shops into a priced, routed parent-order draft
and, on commit, persists the whole order graph in one atomic store call.
"""

from __future__ import annotations

import logging
import random
import string
import time
import uuid
from typing import Optional

from ...errors import (
    CheckoutRejectedError,
    RoutingError,
    StoreError,
    ValidationError,
)
from ...models.domain import CartLine, Coordinate, OrderItem, OrderStatus, ParentOrder, Shop, Suborder
from ...persistence import registry
from ...persistence.store import MarketplaceStore
from ..geospatial import normalize_coordinate
from ..pricing.fees import (
    calculate_delivery_fee,
    calculate_fallback_fee,
    calculate_platform_fee,
    fallback_breakdown,
    round_half_up,
)
from ..pricing.models import DeliveryFeeBreakdown, DeliverySettings, FallbackMode
from ..pricing.settings_provider import DeliverySettingsProvider, get_settings_provider
from ..routing.matrix_client import MatrixClient
from ..routing.models import RoutePlan
from ..routing.planner import fallback_route, plan_route
from .models import CheckoutCalculation, CheckoutRequest, ParentOrderDraft, SuborderDraft

logger = logging.getLogger(__name__)

EMPTY_CART_MESSAGE = "Your cart is empty."
MISSING_DESTINATION_MESSAGE = "Please select the delivery location on the map."
SHOPS_UNAVAILABLE_MESSAGE = "Failed to load shop data."
ROUTING_BLOCKED_MESSAGE = "Failed to calculate the delivery fee. Please try again."

_ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


def group_cart_lines(lines: list[CartLine]) -> dict[str, list[CartLine]]:
    """Bucket lines by shop, keeping the order in which shops first appear."""
    grouped: dict[str, list[CartLine]] = {}
    for line in lines:
        grouped.setdefault(line.shop_id, []).append(line)
    return grouped


def _validate_lines(lines: list[CartLine]) -> list[str]:
    errors: list[str] = []
    for line in lines:
        if line.quantity <= 0:
            errors.append(f"Quantity for product {line.product_id} must be at least 1.")
        if line.unit_price < 0:
            errors.append(f"Price for product {line.product_id} is invalid.")
    return errors


def _load_shop_coordinates(
    store: MarketplaceStore,
    shop_ids: list[str],
    errors: list[str],
) -> list[tuple[Shop, Coordinate]]:
    try:
        shops = {shop.id: shop for shop in store.fetch_shops(shop_ids)}
    except StoreError as exc:
        logger.error("Failed to load shops for checkout: %s", exc)
        errors.append(SHOPS_UNAVAILABLE_MESSAGE)
        return []

    located: list[tuple[Shop, Coordinate]] = []
    for shop_id in shop_ids:
        shop = shops.get(shop_id)
        if shop is None:
            errors.append(f"Shop {shop_id} is no longer available.")
            continue
        coordinate = normalize_coordinate(shop.latitude, shop.longitude)
        if coordinate is None:
            errors.append(f'Shop "{shop.name}" has no location set. The order cannot be completed.')
            continue
        located.append((shop, coordinate))
    return located


def _build_suborder_drafts(
    route: RoutePlan,
    located_shops: list[tuple[Shop, Coordinate]],
    lines_by_shop: dict[str, list[CartLine]],
) -> list[SuborderDraft]:
    drafts: list[SuborderDraft] = []
    for position, shop_index in enumerate(route.pickup_sequence):
        shop, _ = located_shops[shop_index - 1]
        lines = lines_by_shop[shop.id]
        items = [
            OrderItem(
                product_id=line.product_id,
                product_name=line.product_name,
                product_image=line.product_image,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=round_half_up(line.line_total, 2),
            )
            for line in lines
        ]
        drafts.append(
            SuborderDraft(
                shop_id=shop.id,
                shop_name=shop.name,
                pickup_sequence_index=position,
                subtotal=round_half_up(sum(line.line_total for line in lines), 2),
                items=items,
            )
        )
    return drafts


def calculate_checkout(
    request: CheckoutRequest,
    *,
    store: MarketplaceStore | None = None,
    matrix_client: MatrixClient | None = None,
    settings_provider: DeliverySettingsProvider | None = None,
    force_settings_refresh: bool = False,
) -> CheckoutCalculation:
    """Price and route ``request``.

    Validation problems are collected into ``errors`` rather than raised, and a
    result with errors never carries a draft. ``SettingsUnavailableError``
    propagates: there is no safe default pricing policy.
    """
    store = store or registry.get_store()
    settings_provider = settings_provider or get_settings_provider()

    errors = _validate_lines(request.cart_lines)
    lines_by_shop = group_cart_lines(request.cart_lines)
    shop_ids = list(lines_by_shop)
    if not shop_ids:
        errors.append(EMPTY_CART_MESSAGE)

    settings = settings_provider.get_settings(force_refresh=force_settings_refresh)
    if len(shop_ids) > settings.max_shops_per_order:
        errors.append(f"A single order may include at most {settings.max_shops_per_order} shops.")

    destination = normalize_coordinate(request.delivery_latitude, request.delivery_longitude)
    if destination is None:
        errors.append(MISSING_DESTINATION_MESSAGE)

    located_shops = _load_shop_coordinates(store, shop_ids, errors) if shop_ids else []

    if errors:
        return CheckoutCalculation(errors=errors)

    points = [destination, *(coordinate for _, coordinate in located_shops)]
    client = matrix_client or MatrixClient(profile=settings.mapbox_profile)

    is_fallback = False
    fallback_warning: Optional[str] = None
    try:
        matrix = client.get_matrix(points)
        route = plan_route(matrix)
        fee_breakdown = calculate_delivery_fee(route, len(shop_ids), settings)
    except ValidationError as exc:
        return CheckoutCalculation(errors=[str(exc)])
    except RoutingError as exc:
        if settings.fallback_mode is FallbackMode.BLOCK_CHECKOUT:
            logger.warning("Routing unavailable and fallback disabled; blocking checkout: %s", exc)
            return CheckoutCalculation(errors=[ROUTING_BLOCKED_MESSAGE])
        logger.warning("Routing unavailable, using fallback delivery fee: %s", exc)
        fallback = calculate_fallback_fee(settings)
        is_fallback = True
        fallback_warning = fallback.warning
        route = fallback_route(len(located_shops))
        fee_breakdown = fallback_breakdown(settings, len(shop_ids))

    suborder_drafts = _build_suborder_drafts(route, located_shops, lines_by_shop)
    parent_draft = _build_parent_draft(request, destination, route, fee_breakdown, settings, suborder_drafts)

    return CheckoutCalculation(
        parent_order_draft=parent_draft,
        suborder_drafts=suborder_drafts,
        fee_breakdown=fee_breakdown,
        route_plan=route,
        errors=[],
        is_fallback=is_fallback,
        fallback_warning=fallback_warning,
    )


def _build_parent_draft(
    request: CheckoutRequest,
    destination: Coordinate,
    route: RoutePlan,
    fee_breakdown: DeliveryFeeBreakdown,
    settings: DeliverySettings,
    suborder_drafts: list[SuborderDraft],
) -> ParentOrderDraft:
    subtotal = round_half_up(sum(draft.subtotal for draft in suborder_drafts), 2)
    platform_fee = calculate_platform_fee(subtotal, settings)
    total = round_half_up(subtotal + fee_breakdown.final_fee + platform_fee, 2)
    return ParentOrderDraft(
        user_id=request.user_id,
        customer_name=request.customer_name,
        customer_phone=request.customer_phone,
        delivery_address=request.delivery_address,
        delivery_latitude=destination.latitude,
        delivery_longitude=destination.longitude,
        delivery_notes=request.notes or None,
        subtotal=subtotal,
        total_delivery_fee=fee_breakdown.final_fee,
        platform_fee=platform_fee,
        total=total,
        route_km=route.total_km,
        route_minutes=route.total_minutes,
        pickup_sequence=list(route.pickup_sequence),
        delivery_fee_breakdown=fee_breakdown.to_dict(),
        delivery_settings_snapshot=settings.to_dict(),
        is_fallback_fee=fee_breakdown.is_fallback,
    )


def generate_order_number(now_ms: int | None = None) -> str:
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(random.choices(_ORDER_NUMBER_ALPHABET, k=9))
    return f"ORD-{millis}-{suffix}"


def build_order_graph(calculation: CheckoutCalculation, order_number: str | None = None) -> ParentOrder:
    """Assign identifiers to a valid calculation's drafts."""
    draft = calculation.parent_order_draft
    if draft is None:
        raise CheckoutRejectedError(calculation.errors)

    parent_id = str(uuid.uuid4())
    number = order_number or generate_order_number()
    suborders = [
        Suborder(
            id=str(uuid.uuid4()),
            order_number=f"{number}-{position}",
            parent_order_id=parent_id,
            shop_id=sub_draft.shop_id,
            items=list(sub_draft.items),
            subtotal=sub_draft.subtotal,
            pickup_sequence_index=sub_draft.pickup_sequence_index,
            status=OrderStatus.PLACED,
            delivery_fee=0.0,
        )
        for position, sub_draft in enumerate(calculation.suborder_drafts, start=1)
    ]
    return ParentOrder(
        id=parent_id,
        order_number=number,
        user_id=draft.user_id,
        customer_name=draft.customer_name,
        customer_phone=draft.customer_phone,
        delivery_address=draft.delivery_address,
        delivery_latitude=draft.delivery_latitude,
        delivery_longitude=draft.delivery_longitude,
        delivery_notes=draft.delivery_notes,
        subtotal=draft.subtotal,
        total_delivery_fee=draft.total_delivery_fee,
        platform_fee=draft.platform_fee,
        total=draft.total,
        route_km=draft.route_km,
        route_minutes=draft.route_minutes,
        pickup_sequence=list(draft.pickup_sequence),
        delivery_fee_breakdown=draft.delivery_fee_breakdown,
        delivery_settings_snapshot=draft.delivery_settings_snapshot,
        is_fallback_fee=draft.is_fallback_fee,
        status=OrderStatus.PLACED,
        suborders=suborders,
    )


def commit_checkout(
    request: CheckoutRequest,
    *,
    store: MarketplaceStore | None = None,
    matrix_client: MatrixClient | None = None,
    settings_provider: DeliverySettingsProvider | None = None,
) -> tuple[ParentOrder, CheckoutCalculation]:
    """Recompute the checkout from fresh settings and persist it atomically.

    Raises ``CheckoutRejectedError`` when validation fails and ``CommitError``
    when the store rejects the write; in both cases nothing is persisted.
    """
    store = store or registry.get_store()
    calculation = calculate_checkout(
        request,
        store=store,
        matrix_client=matrix_client,
        settings_provider=settings_provider,
        force_settings_refresh=True,
    )
    if not calculation.is_valid:
        raise CheckoutRejectedError(calculation.errors)

    draft = calculation.parent_order_draft
    if request.quoted_total is not None and abs(request.quoted_total - draft.total) >= 0.005:
        logger.warning(
            "Client quoted total %.2f differs from authoritative total %.2f for user %s",
            request.quoted_total,
            draft.total,
            request.user_id,
        )

    order = build_order_graph(calculation)
    committed = store.commit_order_graph(order, actor_id=request.user_id)
    logger.info(
        "Committed order %s: %d shops, total %.2f%s",
        committed.order_number,
        len(committed.suborders),
        committed.total,
        " (fallback fee)" if calculation.is_fallback else "",
    )
    return committed, calculation
