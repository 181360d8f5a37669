from __future__ import annotations

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from mydoc.core.settings import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def display_zone() -> ZoneInfo:
    return ZoneInfo(settings.display_timezone)


def as_utc(value: datetime) -> datetime:
    """Normalise to an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_day_start(day: date, tz: ZoneInfo | None = None) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz or display_zone())
