"""Routing domain models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import List, Literal

from ...models.domain import Coordinate

PointType = Literal["customer", "shop"]

CUSTOMER_INDEX = 0


@dataclass(slots=True)
class DistanceMatrix:
    """All-pairs matrix; point 0 is the customer, 1..n are shops in cart-group order."""

    points: List[Coordinate]
    distances: List[List[float]]  # meters
    durations: List[List[float]]  # seconds

    @property
    def size(self) -> int:
        return len(self.distances)


@dataclass(slots=True)
class RouteLeg:
    from_index: int
    to_index: int
    from_type: PointType
    to_type: PointType
    distance_km: float
    duration_minutes: int


@dataclass(slots=True)
class RoutePlan:
    pickup_sequence: List[int]
    route_points: List[int]
    legs: List[RouteLeg] = field(default_factory=list)
    total_km: float = 0.0
    total_minutes: int = 0

    def to_dict(self) -> dict:
        return asdict(self)
