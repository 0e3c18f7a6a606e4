"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_matrix_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.routing.matrix_client import check_health as matrix_health_check
    return matrix_health_check


@router.get("/health/routing", status_code=status.HTTP_200_OK)
def health_routing() -> dict:
    """Check Mapbox matrix service health."""
    if not settings.mapbox_access_token:
        return {"service": "mapbox", "healthy": False, "error": "MKT_MAPBOX_ACCESS_TOKEN is not set."}
    try:
        matrix_health_check = _get_matrix_health_check()
        return {"service": "mapbox", "profile": settings.mapbox_profile, "healthy": matrix_health_check()}
    except Exception as e:
        return {"service": "mapbox", "healthy": False, "error": str(e)}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database() -> dict:
    """Check the configured store and whether the delivery settings row is readable."""
    from ...errors import StoreError
    from ...persistence import registry

    if settings.store_backend == "memory":
        return {
            "backend": "memory",
            "configured": True,
            "message": "Using the in-memory store. Data is not persisted.",
        }

    from ...db.supabase import get_supabase_client

    if not get_supabase_client():
        return {
            "backend": "supabase",
            "configured": False,
            "message": "Supabase not configured. Set MKT_SUPABASE_URL and MKT_SUPABASE_KEY environment variables.",
        }

    try:
        registry.get_store().fetch_delivery_settings()
    except StoreError as exc:
        return {
            "backend": "supabase",
            "configured": True,
            "connected": False,
            "error": str(exc),
            "message": f"Database connection error: {exc}",
        }
    return {
        "backend": "supabase",
        "configured": True,
        "connected": True,
        "message": "Database connected. Delivery settings are readable.",
    }
