"""Translation of domain errors into HTTP responses."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from ..errors import (
    CheckoutRejectedError,
    DriverAssignmentError,
    InvalidTransitionError,
    MarketplaceError,
    OrderNotFoundError,
    SettingsUnavailableError,
    StoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def http_error(exc: Exception, action: str) -> HTTPException:
    """Map ``exc`` to an ``HTTPException``; unexpected errors are logged with traceback."""
    if isinstance(exc, CheckoutRejectedError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(exc), "errors": exc.errors},
        )
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, OrderNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (InvalidTransitionError, DriverAssignmentError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, (SettingsUnavailableError, StoreError)):
        logger.error("%s failed: %s", action, exc)
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    if isinstance(exc, MarketplaceError):
        logger.error("%s failed: %s", action, exc)
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    logging.exception(f"Error during {action}: {exc}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {str(exc)}",
    )
