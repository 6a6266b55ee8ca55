"""Calendar date helpers.

All values are naive calendar dates and wall-clock times in a single local
zone. Weekday ordinals follow the persisted record contract: 0=Sunday .. 6=Saturday.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from dateutil.relativedelta import relativedelta

ISO_DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=days)


def add_weeks(value: date, weeks: int) -> date:
    return value + timedelta(weeks=weeks)


def add_months(value: date, months: int) -> date:
    """Add calendar months, clamping to the last day of short months.

    ``2024-01-31 + 1 month`` is ``2024-02-29``.
    """
    return value + relativedelta(months=months)


def parse_date(value: str | date) -> date:
    """Parse a ``YYYY-MM-DD`` string. Dates pass through; datetimes are truncated."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value.strip(), ISO_DATE_FORMAT).date()
    except ValueError as exc:
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {value!r}") from exc


def format_date(value: date) -> str:
    return value.strftime(ISO_DATE_FORMAT)


def parse_time(value: str | time) -> time:
    """Parse an ``HH:mm`` (or ``HH:mm:ss``) string into a :class:`time`."""
    if isinstance(value, time):
        return value
    text = value.strip()
    for fmt in (TIME_FORMAT, "%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time (expected HH:mm): {value!r}")


def format_time(value: time) -> str:
    return value.strftime(TIME_FORMAT)


def combine(day: date, at: time) -> datetime:
    return datetime.combine(day, at)


def weekday_index(value: date) -> int:
    """Return the Sunday-based weekday ordinal (0=Sunday .. 6=Saturday)."""
    return (value.weekday() + 1) % 7


def start_of_week(value: date) -> date:
    """Return the Sunday on or before *value*."""
    return value - timedelta(days=weekday_index(value))


def end_of_week(value: date) -> date:
    """Return the Saturday on or after *value*."""
    return start_of_week(value) + timedelta(days=6)


def month_grid_window(year: int, month: int) -> tuple[date, date]:
    """Return the ``(start, end)`` dates of the Sunday-start grid covering a month."""
    first = date(year, month, 1)
    last = add_months(first, 1) - timedelta(days=1)
    return start_of_week(first), end_of_week(last)
