"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Dispatch Route Optimizer API"
    api_prefix: str = "/api"
    unloading_points_file: Path = Field(
        default=Path("data/unloading_points.xlsx"),
        description="Fallback workbook with unloading point coordinates when the database has none.",
    )

    # Optimizer tuning
    road_detour_factor: float = Field(
        default=1.4,
        gt=0.0,
        description="Multiplier converting straight-line km into estimated road km.",
    )
    kmeans_max_rounds: int = Field(default=20, ge=1)
    two_opt_max_scans: int = Field(default=100, ge=0)
    two_opt_epsilon_km: float = Field(
        default=0.001,
        ge=0.0,
        description="Minimum gain (km) for a 2-opt move to count as an improvement.",
    )
    enforce_cluster_limits: bool = Field(
        default=False,
        description="Move orders out of clusters that exceed their vehicle's capacity or job limit.",
    )
    time_slot_priority: tuple[str, ...] = Field(
        default=(),
        description="Slot labels in visiting order; used when re-optimizing a single vehicle.",
    )

    # Directions service (OSRM) used for best-effort ETA estimates
    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile to use when computing travel times.",
    )
    osrm_timeout_seconds: float = Field(default=5.0, gt=0.0)
    osrm_max_retries: int = Field(default=1, ge=0)
    osrm_backoff_seconds: float = Field(default=0.5, ge=0.0)
    osrm_max_waypoints: int = Field(default=30, ge=0)

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

    @field_validator("unloading_points_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", "time_slot_priority", mode="before")
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


settings = Settings()
