from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytz


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        return dt

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.

    Microseconds are kept: clients echo updatedAt back during sync and the
    conflict check compares it against the stored value.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc)
    return dt_utc.isoformat().replace("+00:00", "Z")


def resolve_timezone(name: Optional[str], default: str = "UTC"):
    """Return a pytz timezone for an IANA name, raising ValueError if unknown."""
    try:
        return pytz.timezone(name or default)
    except pytz.UnknownTimeZoneError:
        raise ValueError(f"Unknown timezone: {name}")


def local_period_starts(tz, now: Optional[datetime] = None) -> dict[str, datetime]:
    """
    Start of today, this week (Sunday) and this month in the caller's
    timezone, returned as UTC-naive datetimes for querying.
    """
    now_utc = (now or utcnow()).replace(tzinfo=pytz.UTC)
    local_today = now_utc.astimezone(tz).date()

    day_start = datetime.combine(local_today, datetime.min.time())
    # weekday(): Monday=0 .. Sunday=6
    week_start = day_start - timedelta(days=(local_today.weekday() + 1) % 7)
    month_start = day_start.replace(day=1)

    def _to_utc(local_naive: datetime) -> datetime:
        return tz.localize(local_naive).astimezone(pytz.UTC).replace(tzinfo=None)

    return {
        "today": _to_utc(day_start),
        "week": _to_utc(week_start),
        "month": _to_utc(month_start),
        "last7Days": now_utc.replace(tzinfo=None) - timedelta(days=7),
    }
