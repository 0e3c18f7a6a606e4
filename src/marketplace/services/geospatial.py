"""Coordinate validation and geospatial helper functions."""

from __future__ import annotations

import math
from numbers import Real
from typing import Any

from ..models.domain import Coordinate

EARTH_RADIUS_KM = 6371.0
# ~0.11 m precision
COORDINATE_DECIMALS = 6


def _as_finite_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool) or not isinstance(value, Real):
        return None
    number = float(value)
    if not math.isfinite(number):
        return None
    return number


def normalize_coordinate(lat: Any, lng: Any) -> Coordinate | None:
    """Return a normalized ``Coordinate`` or ``None`` when the pair is unusable.

    A pair is rejected when either value is missing or not a finite number,
    when it is exactly ``(0, 0)`` (the "location not set" sentinel), or when it
    falls outside ``[-90, 90]`` / ``[-180, 180]``.
    """

    latitude = _as_finite_float(lat)
    longitude = _as_finite_float(lng)
    if latitude is None or longitude is None:
        return None
    if latitude == 0 and longitude == 0:
        return None
    if not -90.0 <= latitude <= 90.0:
        return None
    if not -180.0 <= longitude <= 180.0:
        return None
    return Coordinate(
        latitude=round(latitude, COORDINATE_DECIMALS),
        longitude=round(longitude, COORDINATE_DECIMALS),
    )


def is_valid_coordinate(lat: Any, lng: Any) -> bool:
    return normalize_coordinate(lat, lng) is not None


def format_coordinate(coordinate: Coordinate) -> str:
    return f"{coordinate.latitude:.6f}, {coordinate.longitude:.6f}"


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c
