from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" is midnight UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
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


def end_of_day(value: datetime) -> datetime:
    """Last representable instant of the calendar day of `value`."""
    return datetime.combine(value.date(), time.max)


def parse_date_bound(value: Optional[str], *, inclusive_end: bool = False) -> Optional[datetime]:
    """
    Parse a date filter bound from a query string.

    A bare date used as an upper bound covers the whole day, so
    date_to=2025-03-01 includes rows stamped 2025-03-01T18:00.
    """
    dt = parse_iso_datetime(value)
    if dt is None:
        return None
    if inclusive_end and len(value.strip()) <= 10:
        return end_of_day(dt)
    return dt


def compact_date(value: date | datetime) -> str:
    """YYYYMMDD form used in document numbers."""
    return value.strftime("%Y%m%d")


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
