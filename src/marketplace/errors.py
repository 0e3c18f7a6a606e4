"""Typed exceptions raised by the settlement engine."""

from __future__ import annotations

from typing import Sequence


class MarketplaceError(Exception):
    """Base class for all domain errors."""


class ValidationError(MarketplaceError):
    """User-facing input problem (bad coordinate, too many shops, missing location)."""

    def __init__(self, message: str, *, index: int | None = None) -> None:
        super().__init__(message)
        self.index = index


class RoutingError(MarketplaceError):
    """The routing provider could not produce a matrix."""


class RoutingUnavailableError(RoutingError):
    """Timeout, network failure, non-2xx or malformed provider response."""


class RateLimitError(RoutingError):
    """The routing provider answered HTTP 429."""


class InsufficientPointsError(MarketplaceError, ValueError):
    """A route needs the customer plus at least one shop."""


class SettingsUnavailableError(MarketplaceError):
    """The delivery pricing policy could not be loaded."""


class StoreError(MarketplaceError):
    """A durable store read or write failed."""


class CommitError(StoreError):
    """The atomic order-graph commit failed; nothing was persisted."""


class OrderNotFoundError(MarketplaceError, LookupError):
    pass


class InvalidTransitionError(MarketplaceError):
    """Requested status change is not allowed from the current status."""

    def __init__(self, current: str, requested: str, message: str | None = None) -> None:
        super().__init__(message or f"Cannot change order status from {current} to {requested}.")
        self.current = current
        self.requested = requested


class DriverAssignmentError(MarketplaceError):
    pass


class CheckoutRejectedError(MarketplaceError):
    """Checkout validation failed; carries every collected problem."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Checkout rejected.")
