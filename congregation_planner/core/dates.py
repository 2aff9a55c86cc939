"""
Calendar Date Utilities

The service works with one canonical date type, ``datetime.date``. At the
HTTP boundary dates travel as ``YYYY-MM-DD`` strings; ``CalendarDate`` parses
them on input and serializes them back on output. "Today" is never read from
a global: callers receive a ``Clock`` so tests can freeze time.
"""

import re
from datetime import date, datetime
from typing import Annotated, Protocol
from zoneinfo import ZoneInfo

from pydantic import BeforeValidator, PlainSerializer

from congregation_planner.core.config import settings
from congregation_planner.core.errors import DateMustBeFuture, DateMustBeSunday

DATE_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])-(0[1-9]|[12]\d|3[01])$")

SUNDAY = 6  # date.weekday()


def is_yyyymmdd(value: str) -> bool:
    """Check the ``YYYY-MM-DD`` shape (does not check the calendar)."""
    return bool(DATE_PATTERN.match(value))


def parse_calendar_date(value: str) -> date:
    """
    Parse a ``YYYY-MM-DD`` string into a date.

    Raises:
        ValueError: if the string has the wrong shape or is not a real day
            (e.g. 2025-02-30).
    """
    if not is_yyyymmdd(value):
        raise ValueError(f"Invalid YYYY-MM-DD format: {value}")
    return date.fromisoformat(value)


def format_calendar_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def is_sunday(value: date) -> bool:
    return value.weekday() == SUNDAY


def compare_dates(a: date, b: date) -> int:
    """Return -1 if a < b, 0 if equal, 1 if a > b."""
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def is_same_date(a: date, b: date) -> bool:
    return compare_dates(a, b) == 0


def is_past_date(value: date, today: date) -> bool:
    """True if the date is before today."""
    return compare_dates(value, today) < 0


def is_future_date(value: date, today: date) -> bool:
    """True if the date is after today (today itself is not future)."""
    return compare_dates(value, today) > 0


def require_future_sunday(value: date, today: date) -> None:
    """Reject dates that cannot carry a newly planned weekend meeting."""
    if not is_sunday(value):
        raise DateMustBeSunday(date=format_calendar_date(value))
    if not is_future_date(value, today):
        raise DateMustBeFuture(date=format_calendar_date(value), today=format_calendar_date(today))


# =============================================================================
# Clock
# =============================================================================


class Clock(Protocol):
    """Source of the current calendar day."""

    def today(self) -> date: ...


class SystemClock:
    """Wall clock evaluated in the configured congregation timezone."""

    def __init__(self, tz_name: str | None = None) -> None:
        self.tz = ZoneInfo(tz_name or settings.timezone)

    def today(self) -> date:
        return datetime.now(self.tz).date()


class FixedClock:
    """Clock frozen on one day."""

    def __init__(self, day: date) -> None:
        self.day = day

    def today(self) -> date:
        return self.day


def get_clock() -> Clock:
    """Dependency for the request clock."""
    return SystemClock()


# =============================================================================
# Pydantic boundary type
# =============================================================================


def _coerce_calendar_date(value: object) -> date:
    if isinstance(value, datetime):
        raise ValueError("Expected a calendar date without time")
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_calendar_date(value)
    raise ValueError("Expected a YYYY-MM-DD string")


CalendarDate = Annotated[
    date,
    BeforeValidator(_coerce_calendar_date),
    PlainSerializer(format_calendar_date, return_type=str, when_used="json"),
]
