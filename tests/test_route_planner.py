import random

import pytest

from src.marketplace.errors import InsufficientPointsError
from src.marketplace.models.domain import Coordinate
from src.marketplace.services.routing.models import DistanceMatrix
from src.marketplace.services.routing.planner import calculate_pickup_order, fallback_route, plan_route


def _matrix(distances, durations=None) -> DistanceMatrix:
    size = len(distances)
    points = [Coordinate(latitude=30.0 + index / 100, longitude=31.0) for index in range(size)]
    if durations is None:
        durations = [[value / 10 for value in row] for row in distances]
    return DistanceMatrix(points=points, distances=distances, durations=durations)


def _three_shop_matrix() -> DistanceMatrix:
    # index 0 customer, 1 = A, 2 = B, 3 = C
    return _matrix(
        [
            [0, 2000, 5000, 3000],
            [2000, 0, 1000, 4000],
            [5000, 1000, 0, 2000],
            [3000, 4000, 2000, 0],
        ]
    )


def test_three_shop_nearest_neighbor_sequence():
    route = plan_route(_three_shop_matrix())

    # A (2000 m) first, then B (1000 m from A beats C at 4000 m), then C.
    assert route.pickup_sequence == [1, 2, 3]
    assert route.route_points == [0, 1, 2, 3, 0]
    assert route.total_km == 8.0
    assert [leg.distance_km for leg in route.legs] == [2.0, 1.0, 2.0, 3.0]


def test_route_starts_and_ends_at_customer_with_one_leg_per_hop():
    route = plan_route(_three_shop_matrix())

    assert route.route_points[0] == 0
    assert route.route_points[-1] == 0
    assert len(route.legs) == len(route.route_points) - 1
    assert route.legs[0].from_type == "customer"
    assert route.legs[0].to_type == "shop"
    assert route.legs[-1].to_type == "customer"


def test_leg_minutes_round_up_and_sum_into_total():
    route = plan_route(
        _matrix(
            [[0, 1500], [1500, 0]],
            durations=[[0, 61], [119, 0]],
        )
    )

    assert [leg.duration_minutes for leg in route.legs] == [2, 2]
    assert route.total_minutes == 4
    assert route.total_km == 3.0


def test_ties_go_to_smallest_index():
    route = plan_route(
        _matrix(
            [
                [0, 1000, 1000, 1000],
                [1000, 0, 500, 500],
                [1000, 500, 0, 500],
                [1000, 500, 500, 0],
            ]
        )
    )

    assert route.pickup_sequence == [1, 2, 3]


def test_single_shop_route():
    route = plan_route(_matrix([[0, 2500], [2600, 0]]))

    assert route.pickup_sequence == [1]
    assert route.route_points == [0, 1, 0]
    assert route.total_km == 5.1


def test_planning_is_deterministic():
    matrix = _three_shop_matrix()
    assert plan_route(matrix) == plan_route(matrix)


def test_customer_only_matrix_is_rejected():
    with pytest.raises(InsufficientPointsError):
        plan_route(_matrix([[0]]))


def test_fallback_route_follows_cart_order_with_zero_totals():
    route = fallback_route(3)

    assert route.pickup_sequence == [1, 2, 3]
    assert route.route_points == [0, 1, 2, 3, 0]
    assert route.legs == []
    assert route.total_km == 0.0
    assert route.total_minutes == 0


def test_calculate_pickup_order_maps_indices_to_shop_ids():
    order = calculate_pickup_order(_three_shop_matrix(), ["shop-a", "shop-b", "shop-c"])
    assert order == ["shop-a", "shop-b", "shop-c"]

    reversed_matrix = _matrix(
        [
            [0, 3000, 1000],
            [3000, 0, 500],
            [1000, 500, 0],
        ]
    )
    assert calculate_pickup_order(reversed_matrix, ["far", "near"]) == ["near", "far"]


def test_calculate_pickup_order_rejects_mismatched_ids():
    with pytest.raises(ValueError):
        calculate_pickup_order(_three_shop_matrix(), ["only-one"])


@pytest.mark.parametrize("size", range(2, 26))
def test_route_shape_holds_for_every_point_count(size):
    rng = random.Random(size)
    distances = [[0 if i == j else rng.randint(100, 20000) for j in range(size)] for i in range(size)]

    route = plan_route(_matrix(distances))

    assert route.route_points[0] == route.route_points[-1] == 0
    assert len(route.legs) == len(route.route_points) - 1
    assert sorted(route.pickup_sequence) == list(range(1, size))
    assert route.total_minutes == sum(leg.duration_minutes for leg in route.legs)
