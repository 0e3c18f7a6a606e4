import math

import pytest

from src.marketplace.models.domain import Coordinate
from src.marketplace.services.geospatial import (
    format_coordinate,
    haversine_km,
    is_valid_coordinate,
    normalize_coordinate,
)


def test_valid_pair_is_returned_unchanged():
    assert normalize_coordinate(30.5, 31.2) == Coordinate(latitude=30.5, longitude=31.2)


@pytest.mark.parametrize(
    "lat, lng",
    [
        (0, 0),
        (91, 0),
        (-90.5, 10),
        (10, 180.01),
        (None, 31.2),
        (30.5, None),
        (math.nan, 31.2),
        (30.5, math.inf),
        ("30.5", "31.2"),
        (True, 31.2),
    ],
)
def test_unusable_pairs_are_rejected(lat, lng):
    assert normalize_coordinate(lat, lng) is None
    assert not is_valid_coordinate(lat, lng)


def test_only_exact_origin_is_the_unset_sentinel():
    assert normalize_coordinate(0, 31.2) == Coordinate(latitude=0.0, longitude=31.2)
    assert normalize_coordinate(30.0, 0) == Coordinate(latitude=30.0, longitude=0.0)


def test_boundaries_are_inclusive():
    assert is_valid_coordinate(90, 180)
    assert is_valid_coordinate(-90, -180)


def test_values_are_rounded_to_six_decimals():
    point = normalize_coordinate(30.12345678, 31.98765432)
    assert point == Coordinate(latitude=30.123457, longitude=31.987654)
    assert format_coordinate(point) == "30.123457, 31.987654"


def test_haversine_matches_known_distance():
    # Cairo Tahrir Square to Giza pyramids is roughly 13 km.
    distance = haversine_km(30.0444, 31.2357, 29.9792, 31.1342)
    assert 11.5 < distance < 13.5
    assert haversine_km(30.0, 31.0, 30.0, 31.0) == 0.0
