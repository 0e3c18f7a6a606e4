"""Cached access to the versioned delivery pricing policy."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, Mapping

from ...config import settings as app_settings
from ...errors import SettingsUnavailableError, StoreError, ValidationError
from ...persistence import registry
from ...persistence.store import MarketplaceStore
from .models import EDITABLE_FIELDS, DeliverySettings

logger = logging.getLogger(__name__)


class DeliverySettingsProvider:
    """Serves the single settings row from a short-lived cache.

    Concurrent refreshes racing past the TTL may each read the store. A load
    that overlaps ``clear_cache`` is returned to its caller but never cached.
    """

    def __init__(
        self,
        store: MarketplaceStore | None = None,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self.ttl_seconds = app_settings.settings_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: DeliverySettings | None = None
        self._cached_at = 0.0
        self._generation = 0

    @property
    def store(self) -> MarketplaceStore:
        return self._store or registry.get_store()

    def get_settings(self, force_refresh: bool = False) -> DeliverySettings:
        now = self._clock()
        with self._lock:
            if not force_refresh and self._cached is not None and (now - self._cached_at) < self.ttl_seconds:
                return self._cached
            generation = self._generation

        fresh = self._load()
        with self._lock:
            if generation == self._generation:
                self._cached = fresh
                self._cached_at = now
        return fresh

    def _load(self) -> DeliverySettings:
        try:
            row = self.store.fetch_delivery_settings()
        except StoreError as exc:
            logger.error("Failed to load delivery settings: %s", exc)
            raise SettingsUnavailableError("Failed to load delivery settings.") from exc
        try:
            return DeliverySettings.from_row(row)
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Stored delivery settings are invalid: %s", exc)
            raise SettingsUnavailableError("Stored delivery settings are invalid.") from exc

    def update_settings(self, updates: Mapping[str, Any], actor_id: str) -> DeliverySettings:
        """Merge ``updates`` into the stored policy, persist, and drop the cache."""
        unknown = sorted(set(updates) - EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown or read-only delivery settings: {', '.join(unknown)}.")

        try:
            current = self.store.fetch_delivery_settings()
        except StoreError:
            # First-time setup: the update itself must then be a complete policy.
            current = {}

        stamped = {
            **dict(updates),
            "updated_at": datetime.now(timezone.utc).isoformat(),
            "updated_by": actor_id,
        }
        try:
            DeliverySettings.from_row({**current, **stamped})
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid delivery settings: {exc}") from exc

        try:
            saved = self.store.save_delivery_settings(stamped)
        except StoreError as exc:
            raise SettingsUnavailableError("Failed to save delivery settings.") from exc

        self.clear_cache()
        logger.info("Delivery settings updated by %s: %s", actor_id, sorted(updates))
        return DeliverySettings.from_row(saved)

    def clear_cache(self) -> None:
        with self._lock:
            self._cached = None
            self._cached_at = 0.0
            self._generation += 1


@lru_cache(maxsize=1)
def get_settings_provider() -> DeliverySettingsProvider:
    return DeliverySettingsProvider()
