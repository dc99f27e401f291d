"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Report store
    report_store_backend: Literal["firestore", "memory"] = "firestore"
    firebase_credentials_path: str | None = None  # Falls back to application default credentials
    firebase_project_id: str | None = None
    reports_collection: str = "reportes"

    # Single timezone used for every date window (day/week/month and custom ranges)
    report_timezone: str = "UTC"

    # Geocoding
    geocoder_provider: Literal["geonames", "nominatim"] = "geonames"
    geonames_base_url: str = "https://secure.geonames.org"
    geonames_username: str = "demo"
    geonames_country: str = "MX"
    nominatim_base_url: str = "https://nominatim.openstreetmap.org"
    geocoder_user_agent: str = "ReportDash/0.1 (municipal incident dashboard)"
    geocoder_timeout_seconds: float = 8.0
    geocoder_max_concurrency: int = 4  # Provider calls in flight at once
    geocode_precision: int = 6  # Decimal places in the cache key (~0.1 m)

    # Regional defaults for unresolved locations
    default_city: str = "Chetumal"
    default_state: str = "Quintana Roo"
    default_municipality: str = "Othón P. Blanco"
    unspecified_label: str = "Sin especificar"

    # API settings
    api_v1_prefix: str = "/api/v1"
    cors_origins: list[str] = ["*"]  # Restrict in production
    rate_limit_per_minute: int = 60

    # Environment
    debug: bool = False

    @property
    def tz(self) -> ZoneInfo:
        """Timezone object for ``report_timezone``."""
        return ZoneInfo(self.report_timezone)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
