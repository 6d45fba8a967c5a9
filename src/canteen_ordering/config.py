"""Application configuration."""

import os
from datetime import time

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    api_token: str
    admin_token: str
    school_timezone: str = "Asia/Manila"
    same_day_cutoff: str = "09:00"
    order_horizon_days: int = 28
    default_daily_item_limit: int | None = None
    placement_max_attempts: int = 3
    placement_backoff_seconds: float = 0.05
    placement_backoff_max_seconds: float = 0.5
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_cutoff(raw: str | None) -> time | None:
    """Parse an ``HH:MM`` same-day cutoff; blank disables same-day orders."""
    if raw is None:
        return None
    cleaned = raw.strip()
    if not cleaned:
        return None
    hours, _, minutes = cleaned.partition(":")
    if not hours.isdigit() or (minutes and not minutes.isdigit()):
        raise ValueError(f"Invalid cutoff time: {raw!r}")
    return time(hour=int(hours), minute=int(minutes or 0))
