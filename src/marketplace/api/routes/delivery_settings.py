"""Admin endpoints for the delivery pricing policy."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...schemas.delivery_settings import DeliverySettingsModel, DeliverySettingsUpdate
from ...services.pricing import settings_provider
from ...services.routing import matrix_client
from ..errors import http_error

router = APIRouter(prefix="/delivery-settings", tags=["delivery-settings"])


@router.get("", response_model=DeliverySettingsModel, status_code=status.HTTP_200_OK)
def get_delivery_settings() -> DeliverySettingsModel:
    try:
        current = settings_provider.get_settings_provider().get_settings()
    except Exception as exc:
        raise http_error(exc, "load delivery settings") from exc
    return DeliverySettingsModel.model_validate(current)


@router.patch("", response_model=DeliverySettingsModel, status_code=status.HTTP_200_OK)
def update_delivery_settings(payload: DeliverySettingsUpdate) -> DeliverySettingsModel:
    """Apply a partial policy update. New prices apply to the next checkout."""
    try:
        updated = settings_provider.get_settings_provider().update_settings(payload.changes(), payload.actor_id)
    except Exception as exc:
        raise http_error(exc, "update delivery settings") from exc
    return DeliverySettingsModel.model_validate(updated)


@router.post("/cache/clear", status_code=status.HTTP_200_OK)
def clear_caches() -> dict:
    """Drop the cached settings row and every cached distance matrix."""
    settings_provider.get_settings_provider().clear_cache()
    matrix_client.clear_cache()
    return {"success": True, "message": "Delivery settings and distance matrix caches cleared"}
