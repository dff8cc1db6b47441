"""Tests for src.core.weekly — trailing-week aggregates."""

from datetime import date, timedelta

from src.core.weekly import (
    DayStat,
    average_check_in_time,
    best_day,
    check_in_times,
    compute_weekly_stats,
    consistency_score,
    day_of_week_stats,
    last_seven_days,
    week_window,
    window_day_stats,
    worst_day,
)
from src.data.models import CheckIn

# Sunday; the window is Mon 2026-02-09 .. Sun 2026-02-15
TODAY = date(2026, 2, 15)
MONDAY = date(2026, 2, 9)


def _ci(d, completed=True, time=None):
    return CheckIn(
        id=0, habit_id=1, user_id=1, date=d.isoformat(), completed=completed, check_in_time=time,
    )


def _week(completed_offsets, times=None):
    """One record per window day; offsets from Monday mark completed days."""
    times = times or {}
    return [
        _ci(MONDAY + timedelta(days=i), completed=i in completed_offsets, time=times.get(i))
        for i in range(7)
    ]


class TestWeekWindow:
    def test_seven_days_oldest_first(self):
        days = week_window(TODAY)
        assert len(days) == 7
        assert days[0] == MONDAY
        assert days[-1] == TODAY


class TestLastSevenDays:
    def test_missing_days_are_false(self):
        records = [_ci(TODAY), _ci(TODAY - timedelta(days=3))]
        assert last_seven_days(records, TODAY) == [False, False, False, True, False, False, True]

    def test_recorded_failure_is_false(self):
        records = [_ci(TODAY, completed=False)]
        assert last_seven_days(records, TODAY)[-1] is False

    def test_records_outside_window_ignored(self):
        records = [_ci(TODAY - timedelta(days=7)), _ci(TODAY + timedelta(days=1))]
        assert last_seven_days(records, TODAY) == [False] * 7


class TestCheckInTimes:
    def test_skip_where_no_time(self):
        records = [_ci(TODAY, time="07:30:00"), _ci(TODAY - timedelta(days=1))]
        times = check_in_times(records, TODAY)
        assert times[-1] == "07:30:00"
        assert times[-2] == "skip"
        assert times[0] == "skip"


class TestDayOfWeekStats:
    def test_counts_per_weekday_in_monday_order(self):
        stats = day_of_week_stats(_week({0, 1, 2}))
        assert list(stats) == [
            "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
        ]
        assert stats["Monday"] == DayStat(completed=1, total=1)
        assert stats["Thursday"] == DayStat(completed=0, total=1)

    def test_accumulates_across_weeks(self):
        records = [
            _ci(MONDAY), _ci(MONDAY - timedelta(days=7), completed=False),
            _ci(MONDAY - timedelta(days=14)),
        ]
        stats = day_of_week_stats(records)
        assert stats["Monday"] == DayStat(completed=2, total=3)
        assert stats["Tuesday"] == DayStat(completed=0, total=0)

    def test_window_stats_count_missing_days(self):
        stats = window_day_stats([_ci(TODAY)], TODAY)
        assert stats["Sunday"] == DayStat(completed=1, total=1)
        assert stats["Monday"] == DayStat(completed=0, total=1)


class TestBestAndWorstDay:
    def test_best_day_tie_goes_to_monday(self):
        stats = day_of_week_stats(_week({0, 1, 2}))
        assert best_day(stats) == "Monday"

    def test_best_day_highest_ratio_wins(self):
        stats = day_of_week_stats(_week({3}))
        assert best_day(stats) == "Thursday"

    def test_best_day_defaults_to_monday_without_completions(self):
        assert best_day(day_of_week_stats([])) == "Monday"

    def test_unobserved_weekday_cannot_win(self):
        stats = day_of_week_stats([_ci(TODAY)])
        assert best_day(stats) == "Sunday"

    def test_worst_day_first_minimum(self):
        stats = day_of_week_stats(_week({0, 1, 2}))
        assert worst_day(stats) == "Thursday"

    def test_worst_day_all_perfect_stays_monday(self):
        stats = day_of_week_stats(_week(set(range(7))))
        assert worst_day(stats) == "Monday"


class TestAverageCheckInTime:
    def test_average_of_completed_days(self):
        records = [_ci(MONDAY, time="08:00:00"), _ci(TODAY, time="09:30:00")]
        assert average_check_in_time(records) == "8:45"

    def test_minutes_zero_padded_hour_unpadded(self):
        assert average_check_in_time([_ci(TODAY, time="07:05:00")]) == "7:05"

    def test_ignores_incomplete_and_untimed_days(self):
        records = [
            _ci(MONDAY, time="20:00:00", completed=False),
            _ci(MONDAY + timedelta(days=1)),
            _ci(TODAY, time="10:00:00"),
        ]
        assert average_check_in_time(records) == "10:00"

    def test_none_when_no_timed_completions(self):
        assert average_check_in_time([_ci(TODAY)]) is None
        assert average_check_in_time([]) is None

    def test_rounds_half_up(self):
        records = [_ci(MONDAY, time="08:00:00"), _ci(TODAY, time="08:01:00")]
        assert average_check_in_time(records) == "8:01"

    def test_midnight_average_is_present(self):
        assert average_check_in_time([_ci(TODAY, time="00:00:00")]) == "0:00"


class TestConsistencyScore:
    def test_three_of_seven(self):
        assert consistency_score(_week({0, 1, 2})) == 43

    def test_empty_is_zero(self):
        assert consistency_score([]) == 0

    def test_half_rounds_up(self):
        records = [_ci(MONDAY), _ci(MONDAY + timedelta(days=1), completed=False)] * 4
        # 4/8 = 50 exactly; 1/8 = 12.5 -> 13
        assert consistency_score(records) == 50
        assert consistency_score([_ci(MONDAY)] + [_ci(TODAY, completed=False)] * 7) == 13


class TestComputeWeeklyStats:
    def test_monday_to_wednesday_week(self):
        stats = compute_weekly_stats(_week({0, 1, 2}), TODAY)
        assert stats.best_day == "Monday"
        assert stats.consistency_score == 43
        assert stats.last_seven_days == [True, True, True, False, False, False, False]
        assert stats.average_checkin_time is None

    def test_filters_to_window(self):
        records = _week({0}) + [_ci(MONDAY - timedelta(days=1))]
        stats = compute_weekly_stats(records, TODAY)
        assert stats.day_stats["Sunday"] == DayStat(completed=0, total=1)

    def test_to_dict_keys(self):
        d = compute_weekly_stats(_week({0}, times={0: "06:15:00"}), TODAY).to_dict()
        assert set(d) == {
            "day_stats", "best_day", "average_checkin_time",
            "consistency_score", "last_seven_days",
        }
        assert d["day_stats"]["Monday"] == {"completed": 1, "total": 1}
        assert d["average_checkin_time"] == "6:15"
