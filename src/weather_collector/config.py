"""Typed settings loader for the weather collectors."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import AnyHttpUrl, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from .exceptions import ConfigError
from .models import LocationClass


class Settings(BaseSettings):
    """Application settings loaded from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_env: Literal["dev", "staging", "prod"] = Field(default="dev", alias="APP_ENV")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )

    database_url: str = Field(
        default="sqlite:///./data/weather.db", alias="DATABASE_URL", repr=False
    )
    db_echo: bool = Field(default=False, alias="DB_ECHO")

    openmeteo_api_url: AnyHttpUrl = Field(
        default="https://api.open-meteo.com/v1/forecast",
        alias="OPENMETEO_API_URL",
    )
    openmeteo_timezone: str = Field(default="Asia/Jakarta", alias="OPENMETEO_TIMEZONE")
    openmeteo_current_fields: str = Field(
        default=(
            "temperature_2m,relative_humidity_2m,weather_code,"
            "wind_speed_10m,wind_direction_10m"
        ),
        alias="OPENMETEO_CURRENT_FIELDS",
    )
    openmeteo_timeout_seconds: float = Field(default=60.0, alias="OPENMETEO_TIMEOUT_SECONDS")
    bmkg_port_api_url: AnyHttpUrl = Field(
        default="https://maritim.bmkg.go.id/api/pelabuhan",
        alias="BMKG_PORT_API_URL",
    )
    port_request_timeout_seconds: float = Field(
        default=30.0, alias="PORT_REQUEST_TIMEOUT_SECONDS"
    )
    weather_user_agent: str = Field(
        default="weather-collector/0.1 (contact: ops@example.com)",
        alias="WEATHER_USER_AGENT",
    )

    batch_size: int = Field(default=50, alias="BATCH_SIZE")
    batch_delay_ms: int = Field(default=5000, alias="BATCH_DELAY_MS")
    request_delay_ms: int = Field(default=500, alias="REQUEST_DELAY_MS")
    max_retries: int = Field(default=3, alias="MAX_RETRIES")
    rate_limit_backoff_seconds: float = Field(default=60.0, alias="RATE_LIMIT_BACKOFF_SECONDS")
    port_progress_every: int = Field(default=50, alias="PORT_PROGRESS_EVERY")

    freshness_city_hours: float = Field(default=6.0, alias="FRESHNESS_CITY")
    freshness_grid_hours: float = Field(default=12.0, alias="FRESHNESS_GRID")
    freshness_port_hours: float = Field(default=6.0, alias="FRESHNESS_PORT")
    history_retention_days: int = Field(default=90, alias="HISTORY_RETENTION_DAYS")

    collector_max_attempts: int = Field(default=3, alias="COLLECTOR_MAX_ATTEMPTS")
    collector_retry_delay_seconds: float = Field(
        default=5.0, alias="COLLECTOR_RETRY_DELAY_SECONDS"
    )
    collector_pause_seconds: float = Field(default=5.0, alias="COLLECTOR_PAUSE_SECONDS")

    grid_lat_min: float = Field(default=-11.0, alias="GRID_LAT_MIN")
    grid_lat_max: float = Field(default=6.0, alias="GRID_LAT_MAX")
    grid_lon_min: float = Field(default=95.0, alias="GRID_LON_MIN")
    grid_lon_max: float = Field(default=141.0, alias="GRID_LON_MAX")
    grid_step: float = Field(default=1.0, alias="GRID_STEP")

    journal_dir: Path = Field(default=Path("./data/journal"), alias="JOURNAL_DIR")

    @field_validator("openmeteo_current_fields", mode="before")
    @classmethod
    def normalize_field_list(cls, value: Any) -> Any:
        """Accept either a comma string or a JSON list from the environment."""
        if isinstance(value, (list, tuple)):
            return ",".join(str(item) for item in value)
        return value

    @model_validator(mode="after")
    def validate_ranges(self) -> Settings:
        """Validate numeric knobs and the grid bounding box."""
        try:
            make_url(self.database_url)
        except ArgumentError as exc:
            raise ValueError(f"DATABASE_URL is not a valid database URL: {exc}") from exc
        if not self.current_fields:
            raise ValueError("OPENMETEO_CURRENT_FIELDS must name at least one field.")
        if not self.openmeteo_timezone.strip():
            raise ValueError("OPENMETEO_TIMEZONE must not be empty.")
        if not self.weather_user_agent.strip():
            raise ValueError("WEATHER_USER_AGENT must not be empty.")
        if self.openmeteo_timeout_seconds <= 0:
            raise ValueError("OPENMETEO_TIMEOUT_SECONDS must be > 0.")
        if self.port_request_timeout_seconds <= 0:
            raise ValueError("PORT_REQUEST_TIMEOUT_SECONDS must be > 0.")
        if self.batch_size <= 0:
            raise ValueError("BATCH_SIZE must be > 0.")
        if self.batch_delay_ms < 0:
            raise ValueError("BATCH_DELAY_MS must be >= 0.")
        if self.request_delay_ms < 0:
            raise ValueError("REQUEST_DELAY_MS must be >= 0.")
        if self.max_retries <= 0:
            raise ValueError("MAX_RETRIES must be > 0.")
        if self.rate_limit_backoff_seconds < 0:
            raise ValueError("RATE_LIMIT_BACKOFF_SECONDS must be >= 0.")
        if self.port_progress_every <= 0:
            raise ValueError("PORT_PROGRESS_EVERY must be > 0.")
        for name, hours in (
            ("FRESHNESS_CITY", self.freshness_city_hours),
            ("FRESHNESS_GRID", self.freshness_grid_hours),
            ("FRESHNESS_PORT", self.freshness_port_hours),
        ):
            if hours <= 0:
                raise ValueError(f"{name} must be > 0.")
        if self.history_retention_days < 0:
            raise ValueError("HISTORY_RETENTION_DAYS must be >= 0.")
        if self.collector_max_attempts <= 0:
            raise ValueError("COLLECTOR_MAX_ATTEMPTS must be > 0.")
        if self.collector_retry_delay_seconds < 0:
            raise ValueError("COLLECTOR_RETRY_DELAY_SECONDS must be >= 0.")
        if self.collector_pause_seconds < 0:
            raise ValueError("COLLECTOR_PAUSE_SECONDS must be >= 0.")
        if not (-90 <= self.grid_lat_min < self.grid_lat_max <= 90):
            raise ValueError("GRID_LAT_MIN/GRID_LAT_MAX must satisfy -90 <= min < max <= 90.")
        if not (-180 <= self.grid_lon_min < self.grid_lon_max <= 180):
            raise ValueError(
                "GRID_LON_MIN/GRID_LON_MAX must satisfy -180 <= min < max <= 180."
            )
        if self.grid_step <= 0:
            raise ValueError("GRID_STEP must be > 0.")
        return self

    @property
    def current_fields(self) -> list[str]:
        return [
            part.strip() for part in self.openmeteo_current_fields.split(",") if part.strip()
        ]

    def freshness_hours(self, location_class: LocationClass) -> float:
        """Return the freshness threshold in hours for a location class."""
        return {
            LocationClass.CITY: self.freshness_city_hours,
            LocationClass.GRID: self.freshness_grid_hours,
            LocationClass.PORT: self.freshness_port_hours,
        }[location_class]

    def safe_summary(self) -> dict[str, Any]:
        """Return config summary safe for journaling (no credentials)."""
        return {
            "app_env": self.app_env,
            "database_url": make_url(self.database_url).render_as_string(hide_password=True),
            "openmeteo_api_url": str(self.openmeteo_api_url),
            "openmeteo_timezone": self.openmeteo_timezone,
            "bmkg_port_api_url": str(self.bmkg_port_api_url),
            "batch_size": self.batch_size,
            "batch_delay_ms": self.batch_delay_ms,
            "request_delay_ms": self.request_delay_ms,
            "max_retries": self.max_retries,
            "rate_limit_backoff_seconds": self.rate_limit_backoff_seconds,
            "freshness_hours": {
                "city": self.freshness_city_hours,
                "grid": self.freshness_grid_hours,
                "port": self.freshness_port_hours,
            },
            "history_retention_days": self.history_retention_days,
            "collector_max_attempts": self.collector_max_attempts,
        }


def load_settings() -> Settings:
    """Load and validate settings, raising ConfigError on failure."""
    try:
        settings = Settings()
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed reading environment/.env: {exc}") from exc

    try:
        settings.journal_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(f"Cannot create JOURNAL_DIR {settings.journal_dir}: {exc}") from exc
    return settings
