"""Insight fact builder — structured inputs for AI-generated text.

Each bundle here is the sole input to text generation. This module knows
nothing about prompts or providers; see src.core.coach for that.

No I/O: this module only transforms data.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Iterable

from src.core.dates import today_utc, weekday_name
from src.core.errors import InvalidInputError
from src.core.weekly import (
    best_day,
    check_in_times,
    last_seven_days,
    week_window,
    window_day_stats,
    worst_day,
)

if TYPE_CHECKING:
    from src.data.models import CheckIn, Habit

MILESTONES = (7, 14, 30, 50, 100)


def detect_milestone(streak: int) -> str | None:
    """Return "N-day" when the streak is exactly one of MILESTONES."""
    if streak < 0:
        raise InvalidInputError(f"Streak length cannot be negative: {streak}")
    if streak in MILESTONES:
        return f"{streak}-day"
    return None


@dataclass
class EncouragementFacts:
    """Facts for the message sent right after a completed check-in."""

    habit_name: str
    category: str
    streak_length: int
    last_seven_days: list[bool] = field(default_factory=list)
    day_of_week: str = ""
    milestone: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class StreakBreakFacts:
    """Facts for the support message after a missed day."""

    habit_name: str
    broken_streak_length: int
    total_days_active: int
    previous_longest_streak: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class WeeklyInsightFacts:
    """Facts for the weekly summary, including the partner comparison."""

    habit_name: str
    category: str
    week_check_ins: list[bool] = field(default_factory=list)
    week_labels: list[str] = field(default_factory=list)   # short weekday name per day, oldest first
    best_day: str = "Monday"
    worst_day: str = "Monday"
    check_in_times: list[str] = field(default_factory=list)
    partner_check_ins: int = 0
    current_streak: int = 0
    longest_streak: int = 0

    @property
    def success_count(self) -> int:
        return sum(1 for done in self.week_check_ins if done)

    def to_dict(self) -> dict:
        return asdict(self)


def _category(habit: Habit) -> str:
    return getattr(habit.category, "value", habit.category)


def build_encouragement_facts(
    habit: Habit,
    streak: int,
    records: Iterable[CheckIn],
    today: date | None = None,
) -> EncouragementFacts:
    if today is None:
        today = today_utc()
    return EncouragementFacts(
        habit_name=habit.habit_name,
        category=_category(habit),
        streak_length=streak,
        last_seven_days=last_seven_days(records, today),
        day_of_week=weekday_name(today),
        milestone=detect_milestone(streak),
    )


def build_streak_break_facts(
    habit: Habit,
    broken_streak_length: int,
    total_days_active: int,
    previous_longest_streak: int,
) -> StreakBreakFacts:
    if broken_streak_length < 0 or previous_longest_streak < 0:
        raise InvalidInputError("Streak lengths cannot be negative")
    return StreakBreakFacts(
        habit_name=habit.habit_name,
        broken_streak_length=broken_streak_length,
        total_days_active=total_days_active,
        previous_longest_streak=previous_longest_streak,
    )


def build_weekly_insight_facts(
    habit: Habit,
    records: Iterable[CheckIn],
    partner_check_ins: int = 0,
    current_streak: int = 0,
    longest_streak: int = 0,
    today: date | None = None,
) -> WeeklyInsightFacts:
    """Assemble the weekly bundle from the habit's trailing-week records.

    Every window day counts once for the best/worst choice; a day with no
    check-in counts as a miss.
    """
    if today is None:
        today = today_utc()
    records = list(records)
    stats = window_day_stats(records, today)
    return WeeklyInsightFacts(
        habit_name=habit.habit_name,
        category=_category(habit),
        week_check_ins=last_seven_days(records, today),
        week_labels=[weekday_name(d)[:3] for d in week_window(today)],
        best_day=best_day(stats),
        worst_day=worst_day(stats),
        check_in_times=check_in_times(records, today),
        partner_check_ins=partner_check_ins,
        current_streak=current_streak,
        longest_streak=longest_streak,
    )
