"""HTTP client for the Mapbox Directions Matrix API."""

from __future__ import annotations

import logging
import threading
from typing import Sequence

import httpx

from ...config import settings
from ...errors import RateLimitError, RoutingUnavailableError, ValidationError
from ...models.domain import Coordinate
from ..geospatial import normalize_coordinate
from .models import DistanceMatrix

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many routing requests. Please try again shortly."
UNAVAILABLE_MESSAGE = "Failed to calculate distances. Please try again."


class MatrixCache:
    """Process-wide memo of matrices keyed by routing profile and rounded coordinates.

    Entries never expire during the process lifetime; ``clear`` is the
    operator's reset.
    """

    def __init__(self) -> None:
        self._entries: dict[str, DistanceMatrix] = {}
        self._key_locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> DistanceMatrix | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, matrix: DistanceMatrix) -> DistanceMatrix:
        with self._lock:
            # First writer wins so concurrent callers all see the same object.
            return self._entries.setdefault(key, matrix)

    def key_lock(self, key: str) -> threading.Lock:
        """Lock serialising upstream fetches for one key."""
        with self._lock:
            return self._key_locks.setdefault(key, threading.Lock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._key_locks.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


matrix_cache = MatrixCache()


def clear_cache() -> None:
    matrix_cache.clear()


def build_cache_key(profile: str, points: Sequence[Coordinate], precision: int | None = None) -> str:
    places = settings.matrix_cache_precision if precision is None else precision
    return f"{profile}:" + "|".join(f"{point.latitude:.{places}f},{point.longitude:.{places}f}" for point in points)


class MatrixClient:
    def __init__(
        self,
        access_token: str | None = None,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_coordinates: int | None = None,
        cache: MatrixCache | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.access_token = access_token or settings.mapbox_access_token
        self.base_url = (base_url or settings.mapbox_base_url).rstrip("/")
        self.profile = profile or settings.mapbox_profile
        self.timeout = timeout if timeout is not None else settings.matrix_timeout_seconds
        self.max_coordinates = max_coordinates or settings.matrix_max_coordinates
        self.cache = cache if cache is not None else matrix_cache
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        return httpx.Client(timeout=httpx.Timeout(self.timeout), transport=self._transport)

    def _validate_points(self, points: Sequence[Coordinate]) -> None:
        if len(points) < 2:
            raise ValidationError(
                f"At least two coordinates are required for a distance matrix (got {len(points)})."
            )
        if len(points) > self.max_coordinates:
            raise ValidationError(f"Maximum {self.max_coordinates} coordinates allowed (got {len(points)}).")
        for index, point in enumerate(points):
            if not isinstance(point, Coordinate) or normalize_coordinate(point.latitude, point.longitude) is None:
                raise ValidationError(f"Invalid coordinate at index {index}.", index=index)

    def get_matrix(self, points: Sequence[Coordinate]) -> DistanceMatrix:
        """Return the distance/duration matrix for ``points`` (customer first, then shops)."""
        self._validate_points(points)

        cache_key = build_cache_key(self.profile, points)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("Using cached matrix for %d points", len(points))
            return cached

        if not self.access_token:
            logger.error("Mapbox access token is not configured")
            raise RoutingUnavailableError(UNAVAILABLE_MESSAGE)

        with self.cache.key_lock(cache_key):
            # Another caller may have fetched this key while we waited.
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached
            payload = self._request(points)
            matrix = self._parse(points, payload)
            logger.info("Mapbox matrix computed for %d points", len(points))
            return self.cache.put(cache_key, matrix)

    def clear_cache(self) -> None:
        self.cache.clear()

    def _request(self, points: Sequence[Coordinate]) -> dict:
        coordinate_str = ";".join(f"{point.longitude},{point.latitude}" for point in points)
        url = f"{self.base_url}/directions-matrix/v1/mapbox/{self.profile}/{coordinate_str}"
        params = {
            "access_token": self.access_token,
            "annotations": "distance,duration",
        }

        client = self._get_client()
        try:
            response = client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            if status_code == 429:
                logger.warning("Mapbox rate limit hit for %d points", len(points))
                raise RateLimitError(RATE_LIMIT_MESSAGE) from exc
            logger.warning("Mapbox matrix request failed with HTTP %s", status_code)
            raise RoutingUnavailableError(UNAVAILABLE_MESSAGE) from exc
        except httpx.TimeoutException as exc:
            logger.warning("Mapbox matrix request timed out after %.1fs", self.timeout)
            raise RoutingUnavailableError(UNAVAILABLE_MESSAGE) from exc
        except httpx.HTTPError as exc:
            logger.warning("Mapbox matrix request failed: %s", exc)
            raise RoutingUnavailableError(UNAVAILABLE_MESSAGE) from exc
        except ValueError as exc:
            logger.warning("Mapbox returned a non-JSON body: %s", exc)
            raise RoutingUnavailableError(UNAVAILABLE_MESSAGE) from exc
        finally:
            client.close()

    def _parse(self, points: Sequence[Coordinate], payload: object) -> DistanceMatrix:
        if not isinstance(payload, dict):
            raise RoutingUnavailableError(UNAVAILABLE_MESSAGE)
        code = payload.get("code", "Ok")
        if code != "Ok":
            logger.warning("Mapbox matrix returned code %r: %s", code, payload.get("message"))
            raise RoutingUnavailableError(UNAVAILABLE_MESSAGE)

        distances = _square_matrix(payload.get("distances"), len(points))
        durations = _square_matrix(payload.get("durations"), len(points))
        if distances is None or durations is None:
            logger.warning("Invalid Mapbox response format: missing, non-square or null cells")
            raise RoutingUnavailableError(UNAVAILABLE_MESSAGE)

        return DistanceMatrix(points=list(points), distances=distances, durations=durations)


def _square_matrix(raw: object, size: int) -> list[list[float]] | None:
    if not isinstance(raw, list) or len(raw) != size:
        return None
    rows: list[list[float]] = []
    for row in raw:
        if not isinstance(row, list) or len(row) != size:
            return None
        values: list[float] = []
        for value in row:
            # Mapbox reports unroutable pairs as null.
            if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
                return None
            values.append(float(value))
        rows.append(values)
    return rows


def check_health(client: MatrixClient | None = None) -> bool:
    """Check Mapbox reachability with a minimal two-point matrix request."""
    matrix_client = client or MatrixClient(cache=MatrixCache())
    test_points = [
        Coordinate(latitude=30.044420, longitude=31.235712),
        Coordinate(latitude=30.033333, longitude=31.233334),
    ]
    try:
        matrix_client.get_matrix(test_points)
    except (RoutingUnavailableError, RateLimitError):
        return False
    return True
