"""Athlete-local clock helpers and the review window rules.

An athlete's stored timezone may be missing or malformed; both resolve
to a usable zone and never raise.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from coach.config import get_settings

logger = logging.getLogger(__name__)

MIDNIGHT = "midnight"
MORNING = "morning"


@dataclass(frozen=True)
class LocalTime:
    hour: int
    minute: int
    weekday: int  # Monday == 0
    date: dt.date
    timezone: str

    @property
    def date_string(self) -> str:
        return self.date.isoformat()

    @property
    def is_sunday(self) -> bool:
        return self.weekday == 6


def resolve_zone(tz_name: Optional[str]) -> dt.tzinfo:
    """Return the athlete's zone, the default zone when unset, or UTC when invalid."""
    name = tz_name or get_settings().default_timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError, OSError):
        # OSError covers directory names such as "America" and overlong keys
        logger.warning("Invalid timezone, falling back to UTC", extra={"ctx_timezone": name})
        return dt.timezone.utc


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def local_time(tz_name: Optional[str], now: Optional[dt.datetime] = None) -> LocalTime:
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=dt.timezone.utc)
    zone = resolve_zone(tz_name)
    local = now.astimezone(zone)
    return LocalTime(
        hour=local.hour,
        minute=local.minute,
        weekday=local.weekday(),
        date=local.date(),
        timezone=str(zone) if isinstance(zone, ZoneInfo) else "UTC",
    )


def local_today(tz_name: Optional[str], now: Optional[dt.datetime] = None) -> dt.date:
    return local_time(tz_name, now).date


def review_window(lt: LocalTime) -> Optional[str]:
    """Midnight is local hour 0; morning is 06:xx or 05:30 onward (half-hour offset zones)."""
    if lt.hour == 0:
        return MIDNIGHT
    if lt.hour == 6 or (lt.hour == 5 and lt.minute >= 30):
        return MORNING
    return None


def week_start(day: dt.date) -> dt.date:
    """Monday of the week containing ``day``."""
    return day - dt.timedelta(days=day.weekday())
