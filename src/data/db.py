"""
HabitPair — SQLite storage.

Habits, daily check-ins, partnerships, partner messages, weekly reflections
and a log of AI-generated texts. Check-ins are unique per (habit_id, date):
recording a day twice updates the existing row.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from src.core.errors import InvalidInputError, UpstreamUnavailableError
from src.data.models import (
    CheckIn,
    Habit,
    HabitCategory,
    Message,
    Partnership,
    PartnershipStatus,
    PrivacySetting,
    Reflection,
)

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class _SQLiteStore(ABC):
    """Shared connection handling for every table class."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success, and map driver errors.

        IntegrityError is re-raised untouched so callers can translate
        constraint violations into domain errors.
        """
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as exc:
            logger.error("Cannot open database %s: %s", self._db_path, exc)
            raise UpstreamUnavailableError(f"Database unavailable: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as exc:
            logger.error("Database error on %s: %s", self._db_path, exc)
            raise UpstreamUnavailableError(f"Database error: {exc}") from exc
        finally:
            conn.close()

    @abstractmethod
    def _init_db(self) -> None:
        """Create this store's tables and indexes if they do not exist."""


class HabitDB(_SQLiteStore):
    """SQLite-backed storage for habits. One active habit per user."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS habits (
                    id              INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id         INTEGER NOT NULL,
                    habit_name      TEXT    NOT NULL,
                    category        TEXT    NOT NULL,
                    start_date      TEXT    NOT NULL,
                    privacy_setting TEXT    NOT NULL DEFAULT 'partner-only',
                    is_active       INTEGER NOT NULL DEFAULT 1,
                    created_at      TEXT    NOT NULL,
                    archived_at     TEXT
                )
            """)
            conn.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_habits_one_active
                ON habits (user_id) WHERE is_active = 1
            """)
        logger.debug("Habits table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_habit(row: sqlite3.Row) -> Habit:
        return Habit(
            id=row["id"],
            user_id=row["user_id"],
            habit_name=row["habit_name"],
            category=HabitCategory(row["category"]),
            start_date=row["start_date"],
            privacy_setting=PrivacySetting(row["privacy_setting"]),
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
            archived_at=row["archived_at"],
        )

    def add_habit(
        self,
        user_id: int,
        habit_name: str,
        category: HabitCategory,
        start_date: str,
        privacy_setting: PrivacySetting = PrivacySetting.PARTNER_ONLY,
    ) -> Habit:
        """Insert a new active habit. Raises InvalidInputError if one is already active."""
        now = _now()
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO habits
                        (user_id, habit_name, category, start_date,
                         privacy_setting, is_active, created_at)
                    VALUES (?, ?, ?, ?, ?, 1, ?)
                    """,
                    (user_id, habit_name, category.value, start_date,
                     privacy_setting.value, now),
                )
                habit_id = cursor.lastrowid
        except sqlite3.IntegrityError as exc:
            raise InvalidInputError(
                "You already have an active habit. Please archive it first."
            ) from exc

        logger.info("Habit added: #%d '%s' for user %d", habit_id, habit_name, user_id)
        return Habit(
            id=habit_id,
            user_id=user_id,
            habit_name=habit_name,
            category=category,
            start_date=start_date,
            privacy_setting=privacy_setting,
            is_active=True,
            created_at=now,
        )

    def get_habit(self, habit_id: int, user_id: int | None = None) -> Habit | None:
        """Fetch a habit by ID, optionally requiring it to belong to user_id."""
        query = "SELECT * FROM habits WHERE id = ?"
        params: list = [habit_id]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        with self._connect() as conn:
            row = conn.execute(query, params).fetchone()
        if row is None:
            return None
        return self._row_to_habit(row)

    def get_active_habit(self, user_id: int) -> Habit | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM habits WHERE user_id = ? AND is_active = 1",
                (user_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_habit(row)

    def list_archived(self, user_id: int) -> list[Habit]:
        """Archived habits, most recently archived first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM habits WHERE user_id = ? AND is_active = 0 "
                "ORDER BY archived_at DESC",
                (user_id,),
            ).fetchall()
        return [self._row_to_habit(r) for r in rows]

    def list_discoverable(
        self, exclude_user_id: int, category: HabitCategory | None = None,
    ) -> list[Habit]:
        """Active habits other users may see: public or partner-only, never private."""
        query = (
            "SELECT * FROM habits WHERE is_active = 1 AND user_id != ? "
            "AND privacy_setting IN (?, ?)"
        )
        params: list = [
            exclude_user_id, PrivacySetting.PUBLIC.value, PrivacySetting.PARTNER_ONLY.value,
        ]
        if category is not None:
            query += " AND category = ?"
            params.append(category.value)
        query += " ORDER BY created_at DESC, id DESC"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_habit(r) for r in rows]

    def update_habit(
        self,
        habit_id: int,
        habit_name: str | None = None,
        privacy_setting: PrivacySetting | None = None,
    ) -> Habit | None:
        """Update name and/or privacy. Returns the updated habit."""
        updates: list[str] = []
        params: list = []
        if habit_name is not None:
            updates.append("habit_name = ?")
            params.append(habit_name)
        if privacy_setting is not None:
            updates.append("privacy_setting = ?")
            params.append(privacy_setting.value)

        if updates:
            params.append(habit_id)
            with self._connect() as conn:
                conn.execute(
                    f"UPDATE habits SET {', '.join(updates)} WHERE id = ?", params,
                )
            logger.info("Habit #%d updated", habit_id)
        return self.get_habit(habit_id)

    def archive_habit(self, habit_id: int) -> Habit | None:
        """Archive a habit. Terminal: there is no way back to active."""
        with self._connect() as conn:
            conn.execute(
                "UPDATE habits SET is_active = 0, archived_at = ? "
                "WHERE id = ? AND is_active = 1",
                (_now(), habit_id),
            )
        logger.info("Habit #%d archived", habit_id)
        return self.get_habit(habit_id)


class CheckInDB(_SQLiteStore):
    """SQLite-backed storage for daily check-ins, one row per habit per day."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS check_ins (
                    id            INTEGER PRIMARY KEY AUTOINCREMENT,
                    habit_id      INTEGER NOT NULL,
                    user_id       INTEGER NOT NULL,
                    date          TEXT    NOT NULL,
                    completed     INTEGER NOT NULL,
                    check_in_time TEXT,
                    notes         TEXT,
                    UNIQUE (habit_id, date)
                )
            """)
        logger.debug("Check-ins table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_check_in(row: sqlite3.Row) -> CheckIn:
        return CheckIn(
            id=row["id"],
            habit_id=row["habit_id"],
            user_id=row["user_id"],
            date=row["date"],
            completed=bool(row["completed"]),
            check_in_time=row["check_in_time"],
            notes=row["notes"],
        )

    def upsert_check_in(
        self,
        habit_id: int,
        user_id: int,
        on_date: str,
        completed: bool,
        check_in_time: str | None = None,
        notes: str | None = None,
    ) -> CheckIn:
        """Create or overwrite the check-in for (habit_id, on_date) atomically."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO check_ins
                    (habit_id, user_id, date, completed, check_in_time, notes)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (habit_id, date) DO UPDATE SET
                    completed     = excluded.completed,
                    check_in_time = excluded.check_in_time,
                    notes         = excluded.notes
                """,
                (habit_id, user_id, on_date, int(completed), check_in_time, notes),
            )
            row = conn.execute(
                "SELECT * FROM check_ins WHERE habit_id = ? AND date = ?",
                (habit_id, on_date),
            ).fetchone()

        check_in = self._row_to_check_in(row)
        logger.info(
            "Check-in recorded: habit #%d on %s (completed=%s)",
            habit_id, on_date, check_in.completed,
        )
        return check_in

    def get_check_in(self, habit_id: int, on_date: str) -> CheckIn | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM check_ins WHERE habit_id = ? AND date = ?",
                (habit_id, on_date),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_check_in(row)

    def get_history(
        self,
        habit_id: int,
        start_date: str | None = None,
        end_date: str | None = None,
        newest_first: bool = False,
    ) -> list[CheckIn]:
        """Return a habit's check-ins ordered by date, within an optional range."""
        query = "SELECT * FROM check_ins WHERE habit_id = ?"
        params: list = [habit_id]
        if start_date is not None:
            query += " AND date >= ?"
            params.append(start_date)
        if end_date is not None:
            query += " AND date <= ?"
            params.append(end_date)
        query += " ORDER BY date DESC" if newest_first else " ORDER BY date"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_check_in(r) for r in rows]

    def count_completed(self, habit_id: int) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM check_ins WHERE habit_id = ? AND completed = 1",
                (habit_id,),
            ).fetchone()
        return row[0]

    def count_completed_for_user(
        self, user_id: int, start_date: str, end_date: str,
    ) -> int:
        """Completed check-ins by a user across all their habits in a date range."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM check_ins "
                "WHERE user_id = ? AND completed = 1 AND date >= ? AND date <= ?",
                (user_id, start_date, end_date),
            ).fetchone()
        return row[0]


class PartnershipDB(_SQLiteStore):
    """SQLite-backed storage for accountability partnerships."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS partnerships (
                    id              INTEGER PRIMARY KEY AUTOINCREMENT,
                    requester_id    INTEGER NOT NULL,
                    receiver_id     INTEGER NOT NULL,
                    status          TEXT    NOT NULL DEFAULT 'pending',
                    request_message TEXT,
                    created_at      TEXT    NOT NULL
                )
            """)
        logger.debug("Partnerships table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_partnership(row: sqlite3.Row) -> Partnership:
        return Partnership(
            id=row["id"],
            requester_id=row["requester_id"],
            receiver_id=row["receiver_id"],
            status=PartnershipStatus(row["status"]),
            request_message=row["request_message"],
            created_at=row["created_at"],
        )

    def add_request(
        self, requester_id: int, receiver_id: int, request_message: str | None = None,
    ) -> Partnership:
        now = _now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO partnerships
                    (requester_id, receiver_id, status, request_message, created_at)
                VALUES (?, ?, 'pending', ?, ?)
                """,
                (requester_id, receiver_id, request_message, now),
            )
            partnership_id = cursor.lastrowid
        logger.info(
            "Partnership request #%d: %d -> %d", partnership_id, requester_id, receiver_id,
        )
        return Partnership(
            id=partnership_id,
            requester_id=requester_id,
            receiver_id=receiver_id,
            status=PartnershipStatus.PENDING,
            request_message=request_message,
            created_at=now,
        )

    def find_pending(self, requester_id: int, receiver_id: int) -> Partnership | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM partnerships "
                "WHERE requester_id = ? AND receiver_id = ? AND status = 'pending'",
                (requester_id, receiver_id),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_partnership(row)

    def get_active(self, user_id: int) -> Partnership | None:
        """The accepted partnership the user belongs to, if any."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM partnerships "
                "WHERE status = 'accepted' AND (requester_id = ? OR receiver_id = ?)",
                (user_id, user_id),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_partnership(row)

    def list_paired_user_ids(self) -> set[int]:
        """Every user currently in an accepted partnership."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT requester_id, receiver_id FROM partnerships WHERE status = 'accepted'"
            ).fetchall()
        return {uid for r in rows for uid in (r["requester_id"], r["receiver_id"])}

    def set_status(self, partnership_id: int, status: PartnershipStatus) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE partnerships SET status = ? WHERE id = ?",
                (status.value, partnership_id),
            )
        logger.info("Partnership #%d is now %s", partnership_id, status.value)


class MessageDB(_SQLiteStore):
    """SQLite-backed storage for encouragement messages between partners."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id             INTEGER PRIMARY KEY AUTOINCREMENT,
                    partnership_id INTEGER NOT NULL,
                    from_user_id   INTEGER NOT NULL,
                    to_user_id     INTEGER NOT NULL,
                    message_text   TEXT    NOT NULL,
                    is_read        INTEGER NOT NULL DEFAULT 0,
                    created_at     TEXT    NOT NULL
                )
            """)
        logger.debug("Messages table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> Message:
        return Message(
            id=row["id"],
            partnership_id=row["partnership_id"],
            from_user_id=row["from_user_id"],
            to_user_id=row["to_user_id"],
            message_text=row["message_text"],
            created_at=row["created_at"],
            is_read=bool(row["is_read"]),
        )

    def add_message(
        self, partnership_id: int, from_user_id: int, to_user_id: int, message_text: str,
    ) -> Message:
        now = _now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO messages
                    (partnership_id, from_user_id, to_user_id, message_text, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (partnership_id, from_user_id, to_user_id, message_text, now),
            )
            message_id = cursor.lastrowid
        return Message(
            id=message_id,
            partnership_id=partnership_id,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            message_text=message_text,
            created_at=now,
        )

    def list_for_partnership(self, partnership_id: int, limit: int = 50) -> list[Message]:
        """Newest messages first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM messages WHERE partnership_id = ? "
                "ORDER BY created_at DESC, id DESC LIMIT ?",
                (partnership_id, limit),
            ).fetchall()
        return [self._row_to_message(r) for r in rows]

    def list_unread(self, to_user_id: int) -> list[Message]:
        """Unread messages addressed to a user, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM messages WHERE to_user_id = ? AND is_read = 0 "
                "ORDER BY created_at, id",
                (to_user_id,),
            ).fetchall()
        return [self._row_to_message(r) for r in rows]

    def get_message(self, message_id: int) -> Message | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM messages WHERE id = ?", (message_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_message(row)

    def mark_read(self, message_id: int) -> Message | None:
        with self._connect() as conn:
            conn.execute("UPDATE messages SET is_read = 1 WHERE id = ?", (message_id,))
        return self.get_message(message_id)


class ReflectionDB(_SQLiteStore):
    """SQLite-backed storage for weekly reflections."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS reflections (
                    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id            INTEGER NOT NULL,
                    habit_id           INTEGER NOT NULL,
                    week_start_date    TEXT    NOT NULL,
                    reflection_text    TEXT,
                    share_with_partner INTEGER NOT NULL DEFAULT 0,
                    created_at         TEXT    NOT NULL
                )
            """)
        logger.debug("Reflections table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_reflection(row: sqlite3.Row) -> Reflection:
        return Reflection(
            id=row["id"],
            user_id=row["user_id"],
            habit_id=row["habit_id"],
            week_start_date=row["week_start_date"],
            reflection_text=row["reflection_text"],
            share_with_partner=bool(row["share_with_partner"]),
            created_at=row["created_at"],
        )

    def add_reflection(
        self,
        user_id: int,
        habit_id: int,
        week_start_date: str,
        reflection_text: str | None = None,
        share_with_partner: bool = False,
    ) -> Reflection:
        now = _now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO reflections
                    (user_id, habit_id, week_start_date, reflection_text,
                     share_with_partner, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user_id, habit_id, week_start_date, reflection_text,
                 int(share_with_partner), now),
            )
            reflection_id = cursor.lastrowid
        logger.info("Reflection #%d added for habit #%d", reflection_id, habit_id)
        return Reflection(
            id=reflection_id,
            user_id=user_id,
            habit_id=habit_id,
            week_start_date=week_start_date,
            reflection_text=reflection_text,
            share_with_partner=share_with_partner,
            created_at=now,
        )

    def get_reflection(self, reflection_id: int, user_id: int | None = None) -> Reflection | None:
        query = "SELECT * FROM reflections WHERE id = ?"
        params: list = [reflection_id]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        with self._connect() as conn:
            row = conn.execute(query, params).fetchone()
        if row is None:
            return None
        return self._row_to_reflection(row)

    def list_for_user(
        self,
        user_id: int,
        habit_id: int | None = None,
        shared_only: bool = False,
    ) -> list[Reflection]:
        """A user's reflections, most recent week first."""
        query = "SELECT * FROM reflections WHERE user_id = ?"
        params: list = [user_id]
        if habit_id is not None:
            query += " AND habit_id = ?"
            params.append(habit_id)
        if shared_only:
            query += " AND share_with_partner = 1"
        query += " ORDER BY week_start_date DESC, id DESC"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_reflection(r) for r in rows]

    def update_reflection(
        self,
        reflection_id: int,
        reflection_text: str | None = None,
        share_with_partner: bool | None = None,
    ) -> Reflection | None:
        updates: list[str] = []
        params: list = []
        if reflection_text is not None:
            updates.append("reflection_text = ?")
            params.append(reflection_text)
        if share_with_partner is not None:
            updates.append("share_with_partner = ?")
            params.append(int(share_with_partner))

        if updates:
            params.append(reflection_id)
            with self._connect() as conn:
                conn.execute(
                    f"UPDATE reflections SET {', '.join(updates)} WHERE id = ?", params,
                )
            logger.info("Reflection #%d updated", reflection_id)
        return self.get_reflection(reflection_id)


class AIResponseDB(_SQLiteStore):
    """Append-only log of generated coach messages."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS ai_responses (
                    id            INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id       INTEGER NOT NULL,
                    response_type TEXT    NOT NULL,
                    context       TEXT    NOT NULL,
                    ai_message    TEXT    NOT NULL,
                    created_at    TEXT    NOT NULL
                )
            """)
        logger.debug("AI responses table initialized at %s", self._db_path)

    def log_response(
        self, user_id: int, response_type: str, context: dict, ai_message: str,
    ) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO ai_responses
                    (user_id, response_type, context, ai_message, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, response_type, json.dumps(context), ai_message, _now()),
            )
        return cursor.lastrowid

    def list_for_user(self, user_id: int, limit: int = 20) -> list[dict]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM ai_responses WHERE user_id = ? "
                "ORDER BY created_at DESC, id DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        return [
            {
                "id": r["id"],
                "response_type": r["response_type"],
                "context": json.loads(r["context"]),
                "ai_message": r["ai_message"],
                "created_at": r["created_at"],
            }
            for r in rows
        ]
