"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="MKT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Multi-Store Checkout API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root logging level for the API process.")
    server_host: str = Field(default="0.0.0.0", description="Interface the API server binds to.")
    server_port: int = Field(default=8000, ge=1, le=65535)
    server_proxy_headers: bool = Field(
        default=True,
        description="Trust X-Forwarded-* headers when running behind a reverse proxy.",
    )

    mapbox_base_url: str = Field(
        default="https://api.mapbox.com",
        description="Base URL of the Mapbox API (override for a proxy or a mock server).",
    )
    mapbox_access_token: Optional[str] = Field(
        default=None,
        description="Mapbox access token used for Directions Matrix requests.",
    )
    mapbox_profile: Literal["driving", "driving-traffic"] = Field(
        default="driving",
        description="Mapbox routing profile used when computing the matrix.",
    )
    matrix_timeout_seconds: float = Field(default=10.0, gt=0.0)
    matrix_max_coordinates: int = Field(
        default=25,
        ge=2,
        description="Maximum number of points per matrix request (Mapbox limit).",
    )
    matrix_cache_precision: int = Field(
        default=5,
        ge=0,
        description="Decimal places used when building matrix cache keys.",
    )
    settings_cache_ttl_seconds: float = Field(default=60.0, ge=0.0)

    store_backend: Literal["supabase", "memory"] = Field(
        default="supabase",
        description="Durable store adapter. 'memory' keeps everything in-process (local runs, tests).",
    )

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("mapbox_base_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


settings = Settings()
