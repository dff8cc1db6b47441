"""Day-record port — the check-in interface the analytics layer reads from.

HabitService depends on these protocols, never on a specific store.
CheckInDB in src.data.db implements both.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from src.data.models import CheckIn


@runtime_checkable
class DayRecordSource(Protocol):
    """Yields a habit's check-ins, optionally bounded by an inclusive date range."""

    def get_history(
        self,
        habit_id: int,
        start_date: str | None = None,
        end_date: str | None = None,
        newest_first: bool = False,
    ) -> list[CheckIn]: ...

    def get_check_in(self, habit_id: int, on_date: str) -> CheckIn | None: ...

    def count_completed(self, habit_id: int) -> int: ...

    def count_completed_for_user(
        self, user_id: int, start_date: str, end_date: str,
    ) -> int: ...


@runtime_checkable
class CheckInStore(DayRecordSource, Protocol):
    """A DayRecordSource that can also record a day."""

    def upsert_check_in(
        self,
        habit_id: int,
        user_id: int,
        on_date: str,
        completed: bool,
        check_in_time: str | None = None,
        notes: str | None = None,
    ) -> CheckIn: ...
