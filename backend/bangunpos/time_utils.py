from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime (or plain date) string into a UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" -> midnight of that day
    - naive values are interpreted as UTC
    - "...Z" or "...+/-HH:MM" are converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Inclusive start and exclusive end of a UTC calendar day."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def end_of_day(dt: datetime) -> datetime:
    """Last representable instant of dt's day; used for inclusive date_to filters."""
    return datetime.combine(dt.date(), time.max)


def compact_date(dt: Optional[datetime] = None) -> str:
    """YYYYMMDD of dt (default: now, UTC)."""
    return (dt or utcnow()).strftime("%Y%m%d")


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
