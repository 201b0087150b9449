"""Scheduler configuration with environment-specific profiles.

Supports dev, test, staging, and production environments via APP_ENV.
All values can be overridden by environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


@dataclass(frozen=True)
class Settings:
    """Immutable scheduler settings resolved from environment."""

    database_url: str
    app_env: str = "dev"
    log_level: str = "INFO"
    default_timezone: str = "America/New_York"
    frontend_url: str = "http://localhost:5173"
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # Batch driver
    review_workers: int = 4
    review_timeout_seconds: float = 120.0
    dedup_clear_hour_utc: int = 4
    dedup_cache_ttl_hours: int = 36
    dedup_cache_max_entries: int = 50_000

    # Coaching policy
    motivation_probability: float = 0.7
    template_lookback_weeks: int = 2
    escalation_lookback_days: int = 30

    # Outbound messaging collaborator
    notify_url: Optional[str] = None
    notify_timeout_seconds: float = 10.0

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"


# -- Environment profiles --

_ENV_PROFILES: dict[str, dict] = {
    "dev": {
        "log_level": "DEBUG",
        "review_workers": 2,
    },
    "test": {
        "log_level": "WARNING",
        "review_workers": 1,
        "review_timeout_seconds": 30.0,
    },
    "staging": {
        "log_level": "INFO",
        "review_workers": 4,
    },
    "production": {
        "log_level": "WARNING",
        "review_workers": 8,
    },
}


def get_database_url() -> str:
    """Resolve database URL from env var or the local default."""
    env_url = os.getenv("DATABASE_URL")
    if env_url:
        return env_url
    return "postgresql+psycopg2://localhost:5432/adaptive_coach"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build Settings by merging environment profile with env-var overrides."""
    app_env = os.getenv("APP_ENV", "dev")
    profile = _ENV_PROFILES.get(app_env, _ENV_PROFILES["dev"])

    return Settings(
        database_url=get_database_url(),
        app_env=app_env,
        log_level=os.getenv("LOG_LEVEL", profile.get("log_level", "INFO")),
        default_timezone=os.getenv("DEFAULT_TIMEZONE", "America/New_York"),
        frontend_url=os.getenv("FRONTEND_URL", "http://localhost:5173"),
        api_host=os.getenv("API_HOST", "127.0.0.1"),
        api_port=int(os.getenv("API_PORT", "8000")),
        review_workers=int(os.getenv("REVIEW_WORKERS", str(profile.get("review_workers", 4)))),
        review_timeout_seconds=float(
            os.getenv("REVIEW_TIMEOUT_SECONDS", str(profile.get("review_timeout_seconds", 120.0)))
        ),
        dedup_clear_hour_utc=int(os.getenv("DEDUP_CLEAR_HOUR_UTC", "4")),
        dedup_cache_ttl_hours=int(os.getenv("DEDUP_CACHE_TTL_HOURS", "36")),
        dedup_cache_max_entries=int(os.getenv("DEDUP_CACHE_MAX_ENTRIES", "50000")),
        motivation_probability=float(os.getenv("MOTIVATION_PROBABILITY", "0.7")),
        template_lookback_weeks=int(os.getenv("TEMPLATE_LOOKBACK_WEEKS", "2")),
        escalation_lookback_days=int(os.getenv("ESCALATION_LOOKBACK_DAYS", "30")),
        notify_url=os.getenv("NOTIFY_URL") or None,
        notify_timeout_seconds=float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "10")),
    )
