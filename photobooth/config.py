"""
Configuration and settings for the photobooth backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Database (Postgres expected)
    database_url: Optional[str] = None

    # Auth
    jwt_secret: str = "photobooth-development-secret-change-me"
    jwt_expire_hours: int = 72

    # S3-compatible storage (DigitalOcean Spaces)
    do_spaces_key: Optional[str] = None
    do_spaces_secret: Optional[str] = None
    do_spaces_endpoint: Optional[str] = None
    do_spaces_region: Optional[str] = None
    do_spaces_bucket: Optional[str] = None
    cdn_host: str = "sgp1.cdn.digitaloceanspaces.com"

    # Guest strips
    guest_expiration_days: int = Field(default=7, ge=0)
    sweep_interval_seconds: float = Field(default=3600, gt=0)
    sweeper_enabled: bool = True

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "PHOTOBOOTH_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
