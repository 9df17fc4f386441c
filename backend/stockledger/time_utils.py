from __future__ import annotations

import re
from datetime import datetime, time, timezone
from typing import Optional


_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


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

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_date_bound(value: Optional[str], *, end: bool = False) -> Optional[datetime]:
    """
    Parse a report/filter bound.

    A bare date ("2024-05-01") covers the whole day: as a start bound it
    means midnight, as an end bound it means 23:59:59.999 of that day.
    Anything else goes through parse_iso_datetime.
    """
    if value is None or not value.strip():
        return None
    s = value.strip()
    if _DATE_ONLY.match(s):
        day = datetime.strptime(s, "%Y-%m-%d").date()
        if end:
            return datetime.combine(day, time(23, 59, 59, 999000))
        return datetime.combine(day, time.min)
    return parse_iso_datetime(s)


def normalize_utc(dt: datetime) -> datetime:
    """Aware -> UTC-naive; naive is assumed to already be UTC."""
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def truncate_to_millis(dt: datetime) -> datetime:
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000)


def to_iso_millis(dt: Optional[datetime]) -> Optional[str]:
    """
    Serialize to ISO-8601 UTC with millisecond precision and trailing 'Z',
    e.g. 2024-05-01T12:30:00.250Z. Naive datetimes are treated as UTC.
    """
    if dt is None:
        return None
    dt = normalize_utc(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


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
