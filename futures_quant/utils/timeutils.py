"""Date and time-of-day parsing shared by the CSV readers and YAML loaders."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any

DATE_LAYOUT = "%Y-%m-%d"
TIMESTAMP_LAYOUT = "%Y-%m-%d %H:%M"
TIME_OF_DAY_LAYOUT = "%H:%M"


def parse_date(value: Any) -> date:
    """Parse ``YYYY-MM-DD`` (or pass through ``date``) into a ``date``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value).strip(), DATE_LAYOUT).date()


def parse_timestamp(value: Any) -> datetime:
    """Parse ``YYYY-MM-DD HH:MM`` into a naive ``datetime``.

    Seconds are accepted and must be zero-padded; the data is hourly so they are dropped.
    """
    if isinstance(value, datetime):
        return value.replace(second=0, microsecond=0)
    text = str(value).strip()
    if len(text) > 16 and text[16] == ":":
        text = text[:16]
    return datetime.strptime(text, TIMESTAMP_LAYOUT)


def parse_time_of_day(value: Any) -> time:
    """Parse ``HH:MM`` into a ``time``.

    PyYAML reads unquoted ``12:30`` as the base-60 integer 750, which is
    interpreted here as minutes since midnight.
    """
    if isinstance(value, time):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid time of day: {value!r}")
    if isinstance(value, int):
        if not 0 <= value < 24 * 60:
            raise ValueError(f"Invalid time of day: {value!r}")
        return time(value // 60, value % 60)
    return datetime.strptime(str(value).strip(), TIME_OF_DAY_LAYOUT).time()


def format_time_of_day(value: time) -> str:
    return value.strftime(TIME_OF_DAY_LAYOUT)


def start_of_day(value: date) -> datetime:
    return datetime(value.year, value.month, value.day)


def add_years(value: date, years: int) -> date:
    """Shift a date by whole years, mapping Feb 29 to Feb 28 where needed."""
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        return value.replace(year=value.year + years, day=28)
