"""Tests for src.data.db — SQLite storage for habits, check-ins and partners."""

import pytest

from src.core.errors import InvalidInputError, UpstreamUnavailableError
from src.data.db import HabitDB, _SQLiteStore
from src.ports.day_record_source import CheckInStore, DayRecordSource
from src.data.models import HabitCategory, PartnershipStatus, PrivacySetting


def _add(habit_db, user_id=1, name="Read"):
    return habit_db.add_habit(user_id, name, HabitCategory.LEARNING, "2026-02-01")


class TestHabitDB:
    def test_add_and_get(self, habit_db):
        habit = _add(habit_db)
        fetched = habit_db.get_habit(habit.id)
        assert fetched.habit_name == "Read"
        assert fetched.category is HabitCategory.LEARNING
        assert fetched.privacy_setting is PrivacySetting.PARTNER_ONLY
        assert fetched.is_active is True
        assert fetched.created_at != ""

    def test_get_scoped_to_owner(self, habit_db):
        habit = _add(habit_db, user_id=1)
        assert habit_db.get_habit(habit.id, user_id=1) is not None
        assert habit_db.get_habit(habit.id, user_id=2) is None

    def test_get_not_found(self, habit_db):
        assert habit_db.get_habit(999) is None

    def test_second_active_habit_rejected(self, habit_db):
        _add(habit_db, user_id=1)
        with pytest.raises(InvalidInputError):
            _add(habit_db, user_id=1, name="Write")

    def test_other_users_unaffected(self, habit_db):
        _add(habit_db, user_id=1)
        assert _add(habit_db, user_id=2).user_id == 2

    def test_archive_then_add(self, habit_db):
        first = _add(habit_db)
        archived = habit_db.archive_habit(first.id)
        assert archived.is_active is False
        assert archived.archived_at is not None
        assert habit_db.get_active_habit(1) is None
        second = _add(habit_db, name="Write")
        assert habit_db.get_active_habit(1).id == second.id
        assert [h.id for h in habit_db.list_archived(1)] == [first.id]

    def test_update_name_and_privacy(self, habit_db):
        habit = _add(habit_db)
        updated = habit_db.update_habit(
            habit.id, habit_name="Read 20 pages", privacy_setting=PrivacySetting.PRIVATE,
        )
        assert updated.habit_name == "Read 20 pages"
        assert updated.privacy_setting is PrivacySetting.PRIVATE

    def test_unopenable_path_is_upstream_error(self, tmp_path):
        with pytest.raises(UpstreamUnavailableError):
            HabitDB(db_path=str(tmp_path))


class TestCheckInDB:
    def test_upsert_creates(self, check_in_db):
        ci = check_in_db.upsert_check_in(1, 1, "2026-02-10", True, "08:00:00", "felt good")
        assert ci.id is not None
        assert ci.completed is True
        assert ci.check_in_time == "08:00:00"
        assert ci.notes == "felt good"

    def test_upsert_same_date_keeps_one_row(self, check_in_db):
        first = check_in_db.upsert_check_in(1, 1, "2026-02-10", False)
        second = check_in_db.upsert_check_in(1, 1, "2026-02-10", True, notes="late")
        history = check_in_db.get_history(1)
        assert len(history) == 1
        assert second.id == first.id
        assert history[0].completed is True
        assert history[0].notes == "late"

    def test_same_date_different_habits(self, check_in_db):
        check_in_db.upsert_check_in(1, 1, "2026-02-10", True)
        check_in_db.upsert_check_in(2, 2, "2026-02-10", True)
        assert len(check_in_db.get_history(1)) == 1
        assert len(check_in_db.get_history(2)) == 1

    def test_history_ordering_and_range(self, check_in_db):
        for d in ("2026-02-12", "2026-02-10", "2026-02-11", "2026-02-14"):
            check_in_db.upsert_check_in(1, 1, d, True)
        assert [c.date for c in check_in_db.get_history(1)] == [
            "2026-02-10", "2026-02-11", "2026-02-12", "2026-02-14",
        ]
        assert [c.date for c in check_in_db.get_history(1, newest_first=True)][0] == "2026-02-14"
        ranged = check_in_db.get_history(1, start_date="2026-02-11", end_date="2026-02-12")
        assert [c.date for c in ranged] == ["2026-02-11", "2026-02-12"]

    def test_get_check_in(self, check_in_db):
        check_in_db.upsert_check_in(1, 1, "2026-02-10", True)
        assert check_in_db.get_check_in(1, "2026-02-10").completed is True
        assert check_in_db.get_check_in(1, "2026-02-11") is None

    def test_counts(self, check_in_db):
        check_in_db.upsert_check_in(1, 7, "2026-02-10", True)
        check_in_db.upsert_check_in(1, 7, "2026-02-11", False)
        check_in_db.upsert_check_in(1, 7, "2026-02-12", True)
        check_in_db.upsert_check_in(1, 7, "2026-01-01", True)
        assert check_in_db.count_completed(1) == 3
        assert check_in_db.count_completed_for_user(7, "2026-02-09", "2026-02-15") == 2
        assert check_in_db.count_completed_for_user(8, "2026-02-09", "2026-02-15") == 0


class TestPartnershipDB:
    def test_request_and_accept(self, partnership_db):
        p = partnership_db.add_request(1, 2, "let's go")
        assert p.status is PartnershipStatus.PENDING
        assert partnership_db.find_pending(1, 2).id == p.id
        assert partnership_db.get_active(1) is None

        partnership_db.set_status(p.id, PartnershipStatus.ACCEPTED)
        active = partnership_db.get_active(2)
        assert active.id == p.id
        assert active.other(2) == 1
        assert active.other(1) == 2
        assert partnership_db.find_pending(1, 2) is None


class TestMessageDB:
    def test_newest_first_with_limit(self, message_db):
        for i in range(3):
            message_db.add_message(1, 1, 2, f"note {i}")
        messages = message_db.list_for_partnership(1, limit=2)
        assert [m.message_text for m in messages] == ["note 2", "note 1"]


class TestAIResponseDB:
    def test_log_and_list(self, ai_log_db):
        ai_log_db.log_response(1, "post-checkin", {"streak": 7, "milestone": "7-day"}, "Nice!")
        entries = ai_log_db.list_for_user(1)
        assert len(entries) == 1
        assert entries[0]["context"] == {"streak": 7, "milestone": "7-day"}
        assert entries[0]["ai_message"] == "Nice!"
        assert ai_log_db.list_for_user(2) == []


class TestStoreBase:
    def test_base_cannot_be_instantiated(self, tmp_db_path):
        with pytest.raises(TypeError):
            _SQLiteStore(db_path=tmp_db_path)

    def test_check_in_db_satisfies_record_ports(self, check_in_db):
        assert isinstance(check_in_db, DayRecordSource)
        assert isinstance(check_in_db, CheckInStore)


class TestDiscovery:
    def test_list_discoverable_skips_private_and_self(self, habit_db):
        habit_db.add_habit(1, "Run", HabitCategory.HEALTH, "2026-02-01")
        habit_db.add_habit(2, "Swim", HabitCategory.HEALTH, "2026-02-01", PrivacySetting.PUBLIC)
        habit_db.add_habit(3, "Diary", HabitCategory.WELLNESS, "2026-02-01", PrivacySetting.PRIVATE)
        habit_db.add_habit(4, "Chess", HabitCategory.LEARNING, "2026-02-01")
        assert sorted(h.user_id for h in habit_db.list_discoverable(1)) == [2, 4]
        assert [h.user_id for h in habit_db.list_discoverable(1, HabitCategory.LEARNING)] == [4]

    def test_archived_habits_not_discoverable(self, habit_db):
        habit = habit_db.add_habit(2, "Swim", HabitCategory.HEALTH, "2026-02-01")
        habit_db.archive_habit(habit.id)
        assert habit_db.list_discoverable(1) == []

    def test_paired_user_ids(self, partnership_db):
        accepted = partnership_db.add_request(1, 2)
        partnership_db.set_status(accepted.id, PartnershipStatus.ACCEPTED)
        partnership_db.add_request(3, 4)
        assert partnership_db.list_paired_user_ids() == {1, 2}


class TestMessageReadFlag:
    def test_mark_read(self, message_db):
        first = message_db.add_message(1, 1, 2, "hi")
        message_db.add_message(1, 1, 2, "again")
        assert [m.message_text for m in message_db.list_unread(2)] == ["hi", "again"]
        assert message_db.mark_read(first.id).is_read is True
        assert [m.message_text for m in message_db.list_unread(2)] == ["again"]
        assert message_db.list_unread(1) == []


class TestReflectionDB:
    def test_add_list_update(self, reflection_db):
        old = reflection_db.add_reflection(1, 10, "2026-02-02", "slow start")
        new = reflection_db.add_reflection(1, 10, "2026-02-09", "better", share_with_partner=True)
        assert [r.id for r in reflection_db.list_for_user(1)] == [new.id, old.id]
        assert [r.id for r in reflection_db.list_for_user(1, shared_only=True)] == [new.id]

        updated = reflection_db.update_reflection(old.id, share_with_partner=True)
        assert updated.share_with_partner is True
        assert updated.reflection_text == "slow start"

    def test_get_scoped_to_owner(self, reflection_db):
        r = reflection_db.add_reflection(1, 10, "2026-02-09")
        assert r.reflection_text is None
        assert reflection_db.get_reflection(r.id, user_id=2) is None
        assert reflection_db.get_reflection(r.id, user_id=1).id == r.id
