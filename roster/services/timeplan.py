"""Calendar and time-of-day helpers shared by the engine and services."""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Tuple

import pandas as pd

from roster.errors import InvalidSelection


def parse_time_string(value) -> time:
    """
    Parse a time of day, truncated to the minute.

    Accepts ``datetime.time`` objects and strings such as ``"07:30"``,
    ``"07:30:00"`` or ``"07:30:15.250"``.

    Raises:
        InvalidSelection: If the value is not a valid time of day
    """
    if isinstance(value, datetime):
        value = value.time()
    if isinstance(value, time):
        return time(value.hour, value.minute)
    if not isinstance(value, str):
        raise InvalidSelection(f"Invalid time of day: {value!r}")

    parts = value.strip().split(":")
    if len(parts) < 2 or len(parts) > 3:
        raise InvalidSelection(f"Invalid time of day: {value!r}")
    try:
        hour = int(parts[0])
        minute = int(parts[1])
        if len(parts) == 3:
            float(parts[2])  # seconds are validated, then dropped
        return time(hour, minute)
    except ValueError as e:
        raise InvalidSelection(f"Invalid time of day: {value!r}") from e


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


def parish_weekday(day: date) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday."""
    return day.isoweekday() % 7


def check_month(year: int, month: int) -> None:
    if not isinstance(year, int) or not isinstance(month, int) or not 1 <= month <= 12 or year < 1:
        raise InvalidSelection(f"Invalid month: {year}-{month}")


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last calendar day of a month."""
    check_month(year, month)
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def dates_in_month(year: int, month: int) -> List[date]:
    first, last = month_bounds(year, month)
    return [first + timedelta(days=i) for i in range((last - first).days + 1)]


def next_month(year: int, month: int) -> Tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def end_of_month(year: int, month: int) -> datetime:
    """Last representable instant of a month, in wall-clock time."""
    _, last = month_bounds(year, month)
    return datetime.combine(last, time.max)


def to_local_naive(moment: datetime, tz: str) -> datetime:
    """
    Express a datetime as naive wall-clock time in ``tz``.

    Aware datetimes are converted; naive ones are assumed to already be local.
    """
    if moment.tzinfo is None:
        return moment
    return pd.Timestamp(moment).tz_convert(tz).tz_localize(None).to_pydatetime()


def utc_now() -> datetime:
    """Aware current instant; converted to parish time wherever it is compared."""
    return datetime.now(timezone.utc)
