import calendar
from datetime import date, datetime, timezone
from typing import Optional, TypeVar

D = TypeVar("D", date, datetime)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def from_timestamp(value: Optional[int]) -> Optional[datetime]:
    """Unix seconds as sent by the billing provider -> aware datetime."""
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def add_months(value: D, months: int) -> D:
    """Add calendar months, clamping to the last day of the target month.

    Jan 31 + 1 month is Feb 28 (or 29).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
