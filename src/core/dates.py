"""Naive UTC calendar-date helpers.

Every "today" in HabitPair is the current UTC calendar date; there is no
per-user timezone. Input parsing lives here so malformed dates are rejected
before they reach the calculators.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from src.core.errors import InvalidInputError

WEEKDAY_NAMES = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
)


def today_utc() -> date:
    """Return the current UTC calendar date."""
    return datetime.now(timezone.utc).date()


def now_time_utc() -> str:
    """Return the current UTC time of day as HH:MM:SS."""
    return datetime.now(timezone.utc).strftime("%H:%M:%S")


def weekday_name(d: date) -> str:
    return WEEKDAY_NAMES[d.weekday()]


def parse_date(value: str | date) -> date:
    """Parse an ISO YYYY-MM-DD string (or pass a date through).

    Raises InvalidInputError on malformed input.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise InvalidInputError(f"Invalid date: {value!r}") from exc


def parse_year_month(year: int | str, month: int | str) -> tuple[int, int]:
    """Validate a (year, month) pair. Month must be 1..12."""
    try:
        y, m = int(year), int(month)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Invalid year/month: {year!r}/{month!r}") from exc
    if not 1 <= m <= 12:
        raise InvalidInputError(f"Month out of range: {m}")
    if not 1 <= y <= 9999:
        raise InvalidInputError(f"Year out of range: {y}")
    return y, m


def time_to_minutes(time_str: str | None) -> int | None:
    """Convert an HH:MM or HH:MM:SS string to minutes from midnight."""
    if not time_str:
        return None
    try:
        parts = time_str.strip().split(":")
        hour, minute = int(parts[0]), int(parts[1])
    except (ValueError, IndexError):
        return None
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return hour * 60 + minute
