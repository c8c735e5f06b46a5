"""
Time utilities for Quotawake.

All internal timestamps are timezone-aware UTC. Conversion to the configured
timezone only happens for display.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import pytz

from quotawake.core.config import get_settings


def get_timezone() -> pytz.BaseTzInfo:
    """Get configured display timezone."""
    settings = get_settings()
    return pytz.timezone(settings.timezone)


def now_utc() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Convert datetime to UTC. Naive datetimes are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime) -> datetime:
    """Convert datetime to configured timezone."""
    tz = get_timezone()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz)


def format_timestamp(dt: Optional[datetime] = None, fmt: str = "iso") -> str:
    """
    Format datetime to string.

    Args:
        dt: Datetime to format. Uses current UTC time if not provided.
        fmt: Format type - 'iso', 'display', 'time' or a strftime pattern
    """
    if dt is None:
        dt = now_utc()

    formats = {
        "iso": "%Y-%m-%dT%H:%M:%SZ",
        "display": "%Y-%m-%d %H:%M:%S %Z",
        "time": "%H:%M:%S",
    }
    if fmt == "iso":
        dt = to_utc(dt)

    return dt.strftime(formats.get(fmt, fmt))


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts a trailing 'Z', explicit offsets, and fractional seconds.
    Empty values return None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc(value)

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(text))


def floor_minutes(delta: timedelta) -> int:
    """Whole minutes in a duration, rounded toward negative infinity."""
    return math.floor(delta.total_seconds() / 60)


def round_minutes(delta: timedelta) -> int:
    """Duration in minutes, rounded to the nearest minute."""
    return round(delta.total_seconds() / 60)
