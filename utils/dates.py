"""
Date/time helpers shared by the connection store and the calendar service.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


_LONG_FRACTION = re.compile(r"(\.\d{7,})")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise a datetime to aware UTC.

    Naive values are assumed to already be UTC (SQLite drops tzinfo on the
    way back out of the database).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into aware UTC."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # Graph sends 7 fractional digits; fromisoformat accepts at most 6.
    text = _LONG_FRACTION.sub(lambda m: m.group(1)[:7], text)
    return ensure_utc(datetime.fromisoformat(text))


def parse_day(value: Optional[str]) -> date:
    """Parse ``YYYY-MM-DD``; ``None``/empty means today (UTC)."""
    if not value:
        return utcnow().date()
    return date.fromisoformat(value[:10])


def get_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"Unknown timezone: {name}") from exc


def day_bounds(day: date, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    """Return the ``[start, end)`` UTC range covering ``day`` in ``tz``."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = start + timedelta(days=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_window(day: date, tz: ZoneInfo, start_hour: int, end_hour: int) -> Tuple[datetime, datetime]:
    """Return the UTC instants for ``start_hour:00``–``end_hour:00`` on ``day`` in ``tz``."""
    start = datetime.combine(day, time(hour=start_hour), tzinfo=tz)
    end = datetime.combine(day, time(hour=end_hour), tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
