"""Tests for src.core.calendar_projector — month grid statuses."""

from datetime import date

import pytest

from src.core.calendar_projector import DayStatus, last_day_of_month, project_month
from src.core.errors import InvalidInputError

TODAY = date(2026, 2, 15)


class TestLastDayOfMonth:
    def test_variable_month_lengths(self):
        assert last_day_of_month(2026, 1) == 31
        assert last_day_of_month(2026, 4) == 30
        assert last_day_of_month(2026, 2) == 28

    def test_leap_years(self):
        assert last_day_of_month(2024, 2) == 29
        assert last_day_of_month(2000, 2) == 29
        assert last_day_of_month(1900, 2) == 28


class TestProjectMonth:
    def test_every_day_appears_once(self):
        cal = project_month(2024, 2, date(2024, 1, 1), TODAY)
        assert len(cal.days) == 29
        assert list(cal.days)[0] == "2024-02-01"
        assert list(cal.days)[-1] == "2024-02-29"
        assert all(isinstance(s, DayStatus) for s in cal.days.values())

    def test_mid_month_start_without_check_ins(self):
        cal = project_month(2026, 2, date(2026, 2, 10), TODAY, completed_dates=[])
        for day in range(1, 10):
            assert cal.days[f"2026-02-{day:02d}"] is DayStatus.FUTURE
        for day in range(10, 16):
            assert cal.days[f"2026-02-{day:02d}"] is DayStatus.MISSED
        for day in range(16, 29):
            assert cal.days[f"2026-02-{day:02d}"] is DayStatus.FUTURE

    def test_completed_days(self):
        cal = project_month(
            2026, 2, "2026-02-10", TODAY,
            completed_dates=["2026-02-10", date(2026, 2, 11)],
        )
        assert cal.days["2026-02-10"] is DayStatus.COMPLETED
        assert cal.days["2026-02-11"] is DayStatus.COMPLETED
        assert cal.days["2026-02-12"] is DayStatus.MISSED

    def test_completion_before_start_is_still_future(self):
        cal = project_month(2026, 2, date(2026, 2, 10), TODAY, completed_dates=["2026-02-05"])
        assert cal.days["2026-02-05"] is DayStatus.FUTURE

    def test_today_is_reachable(self):
        cal = project_month(2026, 2, date(2026, 2, 1), TODAY, completed_dates=["2026-02-15"])
        assert cal.days["2026-02-15"] is DayStatus.COMPLETED
        assert cal.days["2026-02-16"] is DayStatus.FUTURE

    def test_success_rate_counts_future_days(self):
        cal = project_month(
            2026, 2, date(2026, 2, 10), TODAY,
            completed_dates=["2026-02-10", "2026-02-11"],
        )
        assert cal.stats.total_days == 28
        assert cal.stats.completed_days == 2
        assert cal.stats.success_rate == 7.14

    def test_corrected_rate_excludes_future_days(self):
        cal = project_month(
            2026, 2, date(2026, 2, 10), TODAY,
            completed_dates=["2026-02-10", "2026-02-11"],
            exclude_future_from_rate=True,
        )
        assert cal.stats.total_days == 28
        assert cal.stats.success_rate == 33.33

    def test_corrected_rate_all_future_is_zero(self):
        cal = project_month(2026, 3, date(2026, 2, 1), TODAY, exclude_future_from_rate=True)
        assert cal.stats.success_rate == 0.0

    def test_invalid_month(self):
        with pytest.raises(InvalidInputError):
            project_month(2026, 13, date(2026, 1, 1), TODAY)
        with pytest.raises(InvalidInputError):
            project_month(2026, 0, date(2026, 1, 1), TODAY)

    def test_to_dict_wire_format(self):
        cal = project_month(2026, 2, date(2026, 2, 14), TODAY, completed_dates=["2026-02-14"])
        d = cal.to_dict()
        assert d["calendar"]["2026-02-14"] == {"completed": True, "status": "completed"}
        assert d["calendar"]["2026-02-15"] == {"completed": False, "status": "missed"}
        assert d["calendar"]["2026-02-01"] == {"completed": False, "status": "future"}
        assert d["month_stats"] == {"total_days": 28, "completed_days": 1, "success_rate": 3.57}
