"""
Timezone-aware datetime utilities.

All engine timestamps are UTC-aware; these helpers normalize input and
translate period names and lookback strings into concrete windows.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from kpi_engine.models.enums import Period

# UTC timezone constant
UTC = timezone.utc

_PERIOD_SPANS: dict[Period, timedelta] = {
    Period.DAY: timedelta(days=1),
    Period.WEEK: timedelta(days=7),
    Period.MONTH: timedelta(days=30),
    Period.QUARTER: timedelta(days=90),
    Period.YEAR: timedelta(days=365),
}

_LOOKBACK_PATTERN = re.compile(r"^\s*(\d+)\s*([hdw])\s*$", re.IGNORECASE)
_LOOKBACK_UNITS = {"h": "hours", "d": "days", "w": "weeks"}


def now_utc() -> datetime:
    """
    Get current UTC datetime (timezone-aware).

    Replaces datetime.utcnow() which is deprecated in Python 3.12+.
    """
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo) and convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def period_window(
    period: Period,
    now: datetime,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> tuple[datetime, datetime]:
    """
    Resolve a period name into a (start, end) window ending at ``now``.

    Custom periods use the explicit bounds. Rolling windows match the
    day/week/month/quarter/year spans of 1/7/30/90/365 days.
    """
    if period == Period.CUSTOM:
        if start is None or end is None:
            raise ValueError("custom period requires start and end")
        return ensure_utc(start), ensure_utc(end)
    return now - _PERIOD_SPANS[period], now


def parse_lookback(lookback: str) -> timedelta:
    """
    Parse a lookback window such as ``"7d"``, ``"30d"``, ``"12h"`` or ``"2w"``.

    Raises:
        ValueError: If the string is not a positive count followed by h/d/w.
    """
    match = _LOOKBACK_PATTERN.match(lookback or "")
    if not match or int(match.group(1)) <= 0:
        raise ValueError(f"invalid lookback: {lookback!r}")
    unit = _LOOKBACK_UNITS[match.group(2).lower()]
    return timedelta(**{unit: int(match.group(1))})
