"""Calendar projector — tags every day of a month for the calendar grid.

Each date is exactly one of ``completed``, ``missed`` or ``future``. Dates
before the habit started, and dates after today, are ``future``.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable

from src.core.dates import parse_date, parse_year_month, today_utc


class DayStatus(str, Enum):
    COMPLETED = "completed"
    MISSED = "missed"
    FUTURE = "future"


@dataclass
class MonthStats:
    total_days: int
    completed_days: int
    success_rate: float


@dataclass
class MonthCalendar:
    """Per-date status for one (year, month) plus the month's success rate."""

    year: int
    month: int
    days: dict[str, DayStatus] = field(default_factory=dict)   # ISO date → status
    stats: MonthStats | None = None

    def to_dict(self) -> dict:
        return {
            "calendar": {
                iso: {"completed": status is DayStatus.COMPLETED, "status": status.value}
                for iso, status in self.days.items()
            },
            "month_stats": {
                "total_days": self.stats.total_days,
                "completed_days": self.stats.completed_days,
                "success_rate": self.stats.success_rate,
            },
        }


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def classify_day(
    day: date, habit_start: date, today: date, completed: set[date],
) -> DayStatus:
    if day < habit_start or day > today:
        return DayStatus.FUTURE
    if day in completed:
        return DayStatus.COMPLETED
    return DayStatus.MISSED


def project_month(
    year: int,
    month: int,
    habit_start: date | str,
    today: date | None = None,
    completed_dates: Iterable[date | str] = (),
    *,
    exclude_future_from_rate: bool = False,
) -> MonthCalendar:
    """Build the calendar grid for one month.

    The success rate divides by every day in the month, future days
    included, which understates a month still in progress. Pass
    ``exclude_future_from_rate=True`` to divide by reachable days only.
    """
    year, month = parse_year_month(year, month)
    start = parse_date(habit_start)
    if today is None:
        today = today_utc()
    completed = {parse_date(d) for d in completed_dates}

    result = MonthCalendar(year=year, month=month)
    for day_num in range(1, last_day_of_month(year, month) + 1):
        day = date(year, month, day_num)
        result.days[day.isoformat()] = classify_day(day, start, today, completed)

    statuses = list(result.days.values())
    completed_days = sum(1 for s in statuses if s is DayStatus.COMPLETED)
    if exclude_future_from_rate:
        denominator = sum(1 for s in statuses if s is not DayStatus.FUTURE)
    else:
        denominator = len(statuses)
    rate = round(completed_days / denominator * 100, 2) if denominator > 0 else 0.0

    result.stats = MonthStats(
        total_days=len(statuses),
        completed_days=completed_days,
        success_rate=rate,
    )
    return result
