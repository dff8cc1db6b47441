"""Streak calculator — pure business logic.

Streaks are always recomputed from the full check-in history; no counter is
stored. The history is fetched once and walked in memory.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import TYPE_CHECKING, Iterable

from src.core.dates import parse_date, today_utc

if TYPE_CHECKING:
    from src.data.models import CheckIn

logger = logging.getLogger(__name__)


@dataclass
class StreakState:
    """Current and longest streak for one habit."""

    current_streak: int = 0
    longest_streak: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def completed_dates(records: Iterable[CheckIn]) -> list[date]:
    """Return the dates of completed records, sorted ascending (duplicates kept)."""
    return sorted(parse_date(r.date) for r in records if r.completed)


def current_streak(records: Iterable[CheckIn], today: date | None = None) -> int:
    """Count consecutive completed days ending today, walking backward.

    Today must itself be completed: if there is no completed record for today
    the streak is 0, even when yesterday was completed.
    """
    if today is None:
        today = today_utc()
    done = set(completed_dates(records))

    streak = 0
    day = today
    while day in done:
        streak += 1
        day -= timedelta(days=1)
    return streak


def longest_streak(records: Iterable[CheckIn]) -> int:
    """Return the longest run of consecutive completed dates.

    A gap of exactly one day extends the run; any other gap (including a
    duplicate date) starts a new run of length 1.
    """
    dates = completed_dates(records)
    longest = 0
    run = 0
    previous: date | None = None
    for d in dates:
        if previous is not None and (d - previous).days == 1:
            run += 1
        else:
            if previous is not None and d == previous:
                logger.warning("Duplicate completed check-in on %s", d.isoformat())
            run = 1
        longest = max(longest, run)
        previous = d
    return longest


def compute_streaks(records: Iterable[CheckIn], today: date | None = None) -> StreakState:
    records = list(records)
    return StreakState(
        current_streak=current_streak(records, today),
        longest_streak=longest_streak(records),
    )
