from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


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


def local_day_bounds(day: date, tz_name: str) -> tuple[datetime, datetime]:
    """
    UTC-naive half-open interval [start, end) covering one calendar day in tz_name.
    """
    tz = ZoneInfo(tz_name)
    start_local = datetime.combine(day, time.min, tzinfo=tz)
    end_local = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return (
        start_local.astimezone(timezone.utc).replace(tzinfo=None),
        end_local.astimezone(timezone.utc).replace(tzinfo=None),
    )


def local_today(tz_name: str) -> date:
    """Current calendar date in tz_name."""
    return datetime.now(ZoneInfo(tz_name)).date()


def to_local_date(dt: datetime, tz_name: str) -> date:
    """Calendar date in tz_name of a UTC-naive datetime."""
    return dt.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name)).date()


def _is_plain_date(value: str) -> bool:
    return len(value.strip()) == 10 and "T" not in value


def parse_report_range(
    start: Optional[str],
    end: Optional[str],
    tz_name: str,
) -> tuple[Optional[datetime], Optional[datetime]]:
    """
    Normalize a reporting range to UTC-naive [start, end).

    Plain dates ("YYYY-MM-DD") are calendar days in tz_name and the end date
    is inclusive (the bound becomes the next local midnight). Full ISO
    datetimes are exact instants.
    """
    start_dt = None
    end_dt = None

    if start and start.strip():
        if _is_plain_date(start):
            start_dt, _ = local_day_bounds(date.fromisoformat(start.strip()), tz_name)
        else:
            start_dt = parse_iso_datetime(start)

    if end and end.strip():
        if _is_plain_date(end):
            _, end_dt = local_day_bounds(date.fromisoformat(end.strip()), tz_name)
        else:
            end_dt = parse_iso_datetime(end)

    return start_dt, end_dt
