"""Nearest-neighbor pickup sequencing for multi-shop deliveries.

The driver starts at the customer's location, picks up from every shop and
returns to the customer to deliver. Shop counts per order are small, so the
greedy O(n^2) nearest-neighbor walk is used instead of exact TSP solving; it is
deterministic for a given matrix (ties go to the smallest index).
"""

from __future__ import annotations

import math
from typing import Sequence

from ...errors import InsufficientPointsError
from .models import CUSTOMER_INDEX, DistanceMatrix, RouteLeg, RoutePlan


def _point_type(index: int) -> str:
    return "customer" if index == CUSTOMER_INDEX else "shop"


def _nearest_neighbor_order(distances: Sequence[Sequence[float]]) -> list[int]:
    remaining = list(range(1, len(distances)))
    order: list[int] = []
    current = CUSTOMER_INDEX
    while remaining:
        # min() keeps the first minimum, and remaining stays in ascending order.
        nearest = min(remaining, key=lambda candidate: distances[current][candidate])
        remaining.remove(nearest)
        order.append(nearest)
        current = nearest
    return order


def plan_route(matrix: DistanceMatrix) -> RoutePlan:
    """Plan customer -> shops -> customer over ``matrix``."""
    if matrix.size < 2:
        raise InsufficientPointsError(
            f"At least customer + 1 shop required for routing (got {matrix.size} points)."
        )

    pickup_sequence = _nearest_neighbor_order(matrix.distances)
    route_points = [CUSTOMER_INDEX, *pickup_sequence, CUSTOMER_INDEX]

    legs: list[RouteLeg] = []
    total_km = 0.0
    total_minutes = 0
    for from_index, to_index in zip(route_points, route_points[1:]):
        distance_km = matrix.distances[from_index][to_index] / 1000.0
        duration_minutes = math.ceil(matrix.durations[from_index][to_index] / 60.0)
        legs.append(
            RouteLeg(
                from_index=from_index,
                to_index=to_index,
                from_type=_point_type(from_index),
                to_type=_point_type(to_index),
                distance_km=round(distance_km, 2),
                duration_minutes=duration_minutes,
            )
        )
        total_km += distance_km
        total_minutes += duration_minutes

    return RoutePlan(
        pickup_sequence=pickup_sequence,
        route_points=route_points,
        legs=legs,
        total_km=round(total_km, 2),
        total_minutes=total_minutes,
    )


def fallback_route(shop_count: int) -> RoutePlan:
    """Degenerate plan used when no matrix exists: cart-group order, no legs, zero totals."""
    pickup_sequence = list(range(1, shop_count + 1))
    return RoutePlan(
        pickup_sequence=pickup_sequence,
        route_points=[CUSTOMER_INDEX, *pickup_sequence, CUSTOMER_INDEX],
        legs=[],
        total_km=0.0,
        total_minutes=0,
    )


def calculate_pickup_order(matrix: DistanceMatrix, shop_ids: Sequence[str]) -> list[str]:
    """Shop ids in pickup order; ``shop_ids[i]`` sits at matrix index ``i + 1``."""
    if len(shop_ids) != matrix.size - 1:
        raise ValueError(
            f"Expected {matrix.size - 1} shop ids for a {matrix.size}-point matrix, got {len(shop_ids)}."
        )
    route = plan_route(matrix)
    return [shop_ids[index - 1] for index in route.pickup_sequence]
