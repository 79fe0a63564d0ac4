"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="VTC_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "VTC Pricing Engine API"
    api_prefix: str = "/api"
    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile to use when computing routes.",
    )
    osrm_max_retries: int = Field(default=3, ge=0)
    osrm_backoff_seconds: float = Field(default=1.0, ge=0.0)
    osrm_timeout_seconds: float = Field(default=30.0, gt=0.0)
    road_distance_factor: float = Field(
        default=1.3,
        gt=0.0,
        description="Multiplier applied to straight-line distance when no routed distance is available.",
    )
    fallback_average_speed_kmh: float = Field(
        default=50.0,
        gt=0.0,
        description="Average speed used to estimate duration when no routed duration is available.",
    )
    fuel_price_staleness_hours: float = Field(default=48.0, ge=0.0)
    default_fuel_country_code: str = Field(default="FR")
    default_fuel_type: Literal["DIESEL", "GASOLINE", "LPG", "ELECTRIC"] = Field(default="DIESEL")
    fuel_price_table: str = Field(default="fuel_price_cache")
    rse_rules_table: str = Field(default="organization_license_rules")
    pricing_timezone: str = Field(
        default="Europe/Paris",
        description="Timezone used to evaluate night and weekend rates.",
    )
    staffing_selection_policy: Literal["CHEAPEST", "FASTEST", "PREFER_INTERNAL"] = Field(
        default="CHEAPEST",
        description="Policy used to pick a staffing plan when a heavy-vehicle trip is not compliant.",
    )
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
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

    @field_validator("osrm_base_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text.rstrip("/") or None


settings = Settings()
