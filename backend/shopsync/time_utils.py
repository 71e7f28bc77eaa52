from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional, TypeVar

from dateutil.relativedelta import relativedelta

PERIOD_UNITS = ("days", "months", "years")

_D = TypeVar("_D", date, datetime)


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


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse a calendar date ("YYYY-MM-DD"); None / "" -> None."""
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    return date.fromisoformat(s[:10])


def to_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """Aware datetimes converted to UTC and stripped; naive ones are already UTC."""
    if dt is None or dt.tzinfo is None:
        return dt
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


def shift_date(value: _D, amount: int, unit: str, direction: str = "add") -> _D:
    """
    Move a date or datetime by `amount` days, months or years.

    Month and year steps clamp to the last day of the target month
    (Jan 31 + 1 month -> Feb 28/29).
    """
    if unit not in PERIOD_UNITS:
        raise ValueError(f"Unknown period unit: {unit}")
    if direction not in ("add", "subtract"):
        raise ValueError(f"Unknown direction: {direction}")

    sign = 1 if direction == "add" else -1
    return value + relativedelta(**{unit: sign * int(amount)})
