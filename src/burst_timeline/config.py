"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    database_url: str = "sqlite:///burst_timeline.db"
    database_echo: bool = False
    event_utc_offset_hours: float = -7.0
    interframe_interval_seconds: float = 2.0
    view_cache_ttl_seconds: int = 12 * 60 * 60
    race_condition_ttl_seconds: float = 5.0
    split_max_attempts: int = 20
    split_retry_delay_seconds: float = 0.05
    exiftool_executable: str | None = None
    event_day_names: str = "monday,tuesday,wednesday,thursday,friday"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_prefix="BURST_TIMELINE_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_day_names(raw: str | None) -> tuple[str, ...]:
    """Parse the ordered list of event day names from env."""
    if raw is None:
        return ()
    names: list[str] = []
    for chunk in raw.split(","):
        value = chunk.strip().lower()
        if value and value not in names:
            names.append(value)
    return tuple(names)
