from datetime import datetime, timezone as dt_timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from assetminder.core.config import settings


def get_zoneinfo() -> Optional[ZoneInfo]:
    tz_name = getattr(settings, "DEFAULT_TIMEZONE", None)
    if not tz_name:
        return None
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def utc_now() -> datetime:
    return datetime.now(dt_timezone.utc)


def to_utc_aware(dt: datetime | None) -> datetime | None:
    """
    Normalize any datetime to UTC-aware (tzinfo=UTC) for APIs needing tz-aware values.
    - Aware datetimes are converted to UTC
    - Naive datetimes are assumed UTC and tz attached
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=dt_timezone.utc)
    return dt.astimezone(dt_timezone.utc)


def format_local_date(dt: datetime, tz_name: Optional[str] = None) -> str:
    """Render a date for reminder messages, e.g. 'Mar 5, 2026'."""
    tz = None
    if tz_name:
        try:
            tz = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            tz = None
    if tz is None:
        tz = get_zoneinfo() or dt_timezone.utc
    local = to_utc_aware(dt).astimezone(tz)
    return f"{local.strftime('%b')} {local.day}, {local.year}"
