"""Windowed aggregator — 7-day grids, weekday ratios, consistency score.

The weekday aggregates are generic over any set of dated check-ins; the
caller decides the range. Only the grid helpers are tied to the trailing
7-day window ``[today - 6, today]``.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING, Iterable

from src.core.dates import WEEKDAY_NAMES, parse_date, time_to_minutes, today_utc, weekday_name

if TYPE_CHECKING:
    from src.data.models import CheckIn

WINDOW_DAYS = 7


@dataclass
class DayStat:
    """Completed vs. observed count for one weekday."""

    completed: int = 0
    total: int = 0

    @property
    def ratio(self) -> float:
        return self.completed / self.total if self.total > 0 else 0.0


@dataclass
class WeeklyStats:
    """Aggregates for the trailing week ending at a reference date."""

    day_stats: dict[str, DayStat] = field(default_factory=dict)
    best_day: str = "Monday"
    average_checkin_time: str | None = None
    consistency_score: int = 0
    last_seven_days: list[bool] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "day_stats": {
                day: {"completed": s.completed, "total": s.total}
                for day, s in self.day_stats.items()
            },
            "best_day": self.best_day,
            "average_checkin_time": self.average_checkin_time,
            "consistency_score": self.consistency_score,
            "last_seven_days": list(self.last_seven_days),
        }


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def week_window(today: date | None = None) -> list[date]:
    """Return the 7 dates ending at ``today``, oldest first."""
    if today is None:
        today = today_utc()
    return [today - timedelta(days=offset) for offset in range(WINDOW_DAYS - 1, -1, -1)]


def in_window(records: Iterable[CheckIn], today: date | None = None) -> list[CheckIn]:
    """Keep only the records that fall inside the trailing 7-day window."""
    days = week_window(today)
    start, end = days[0], days[-1]
    return [r for r in records if start <= parse_date(r.date) <= end]


def _by_date(records: Iterable[CheckIn]) -> dict[date, CheckIn]:
    return {parse_date(r.date): r for r in records}


def last_seven_days(records: Iterable[CheckIn], today: date | None = None) -> list[bool]:
    """Completion grid for the window, oldest first. Missing days are False."""
    lookup = _by_date(records)
    return [bool(lookup[d].completed) if d in lookup else False for d in week_window(today)]


def check_in_times(records: Iterable[CheckIn], today: date | None = None) -> list[str]:
    """Recorded time for each window day, or "skip" where there is none."""
    lookup = _by_date(records)
    times: list[str] = []
    for d in week_window(today):
        record = lookup.get(d)
        times.append(record.check_in_time if record and record.check_in_time else "skip")
    return times


def _empty_stats() -> dict[str, DayStat]:
    return {name: DayStat() for name in WEEKDAY_NAMES}


def day_of_week_stats(records: Iterable[CheckIn]) -> dict[str, DayStat]:
    """Accumulate completed/observed counts per weekday, Monday first."""
    stats = _empty_stats()
    for r in records:
        stat = stats[weekday_name(parse_date(r.date))]
        stat.total += 1
        if r.completed:
            stat.completed += 1
    return stats


def window_day_stats(records: Iterable[CheckIn], today: date | None = None) -> dict[str, DayStat]:
    """Per-weekday counts over the window, counting each window day once.

    Unlike day_of_week_stats, a day with no record is observed as a miss.
    """
    stats = _empty_stats()
    grid = last_seven_days(records, today)
    for d, done in zip(week_window(today), grid):
        stat = stats[weekday_name(d)]
        stat.total += 1
        if done:
            stat.completed += 1
    return stats


def best_day(stats: dict[str, DayStat]) -> str:
    """Weekday with the highest ratio; ties go to the earliest in Mon→Sun order."""
    best, best_ratio = "Monday", 0.0
    for name in WEEKDAY_NAMES:
        ratio = stats[name].ratio if name in stats else 0.0
        if ratio > best_ratio:
            best, best_ratio = name, ratio
    return best


def worst_day(stats: dict[str, DayStat]) -> str:
    """Weekday with the lowest ratio; ties go to the earliest in Mon→Sun order."""
    worst, worst_ratio = "Monday", 1.0
    for name in WEEKDAY_NAMES:
        ratio = stats[name].ratio if name in stats else 0.0
        if ratio < worst_ratio:
            worst, worst_ratio = name, ratio
    return worst


def average_check_in_time(records: Iterable[CheckIn]) -> str | None:
    """Mean time of completed check-ins as H:MM, or None if there are none."""
    minutes = [
        m for m in (time_to_minutes(r.check_in_time) for r in records if r.completed)
        if m is not None
    ]
    if not minutes:
        return None
    avg = _round_half_up(sum(minutes) / len(minutes))
    return f"{avg // 60}:{avg % 60:02d}"


def consistency_score(records: Iterable[CheckIn]) -> int:
    """Percentage of observed days that were completed, rounded half-up."""
    records = list(records)
    if not records:
        return 0
    completed = sum(1 for r in records if r.completed)
    return _round_half_up(100 * completed / len(records))


def compute_weekly_stats(records: Iterable[CheckIn], today: date | None = None) -> WeeklyStats:
    """Aggregate the trailing week ending at ``today``."""
    if today is None:
        today = today_utc()
    window = in_window(records, today)
    stats = day_of_week_stats(window)
    return WeeklyStats(
        day_stats=stats,
        best_day=best_day(stats),
        average_checkin_time=average_check_in_time(window),
        consistency_score=consistency_score(window),
        last_seven_days=last_seven_days(window, today),
    )
