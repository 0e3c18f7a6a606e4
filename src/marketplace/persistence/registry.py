"""Selects the durable store adapter configured for this process."""

from __future__ import annotations

import logging
from functools import lru_cache

from ..config import settings
from .store import MarketplaceStore

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_store() -> MarketplaceStore:
    if settings.store_backend == "memory":
        from .memory import InMemoryStore

        logger.warning("Using the in-memory store; orders are lost when the process exits")
        return InMemoryStore()

    from .database import SupabaseStore

    return SupabaseStore()
