"""
HabitPair — Data Models.

Habits, daily check-ins, partnerships, the messages exchanged between
partners and weekly reflections. Check-ins are the raw material for every
streak and analytics figure; nothing derived (streaks, scores) is ever stored here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class HabitCategory(str, Enum):
    HEALTH = "Health"
    LEARNING = "Learning"
    CREATIVITY = "Creativity"
    PRODUCTIVITY = "Productivity"
    WELLNESS = "Wellness"


class PrivacySetting(str, Enum):
    PUBLIC = "public"
    PARTNER_ONLY = "partner-only"
    PRIVATE = "private"


class PartnershipStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    ENDED = "ended"


@dataclass
class Habit:
    """The single daily habit a user is tracking.

    A user owns at most one active habit. Archiving is terminal: archived
    habits keep their check-in history but are read-only.
    """

    id: int
    user_id: int
    habit_name: str                   # e.g. "Read 20 pages"
    category: HabitCategory
    start_date: str                   # ISO date YYYY-MM-DD
    privacy_setting: PrivacySetting = PrivacySetting.PARTNER_ONLY
    is_active: bool = field(default=True)
    created_at: str = ""
    archived_at: str | None = None


@dataclass
class CheckIn:
    """One day's report for a habit. Unique per (habit_id, date)."""

    id: int
    habit_id: int
    user_id: int
    date: str                         # ISO date YYYY-MM-DD
    completed: bool
    check_in_time: str | None = None  # HH:MM:SS, UTC
    notes: str | None = None


@dataclass
class Partnership:
    """An accountability pairing between two users."""

    id: int
    requester_id: int
    receiver_id: int
    status: PartnershipStatus = PartnershipStatus.PENDING
    request_message: str | None = None
    created_at: str = ""

    def other(self, user_id: int) -> int:
        """Return the partner of ``user_id`` in this pairing."""
        return self.receiver_id if self.requester_id == user_id else self.requester_id


@dataclass
class Message:
    """A short encouragement note sent to a partner."""

    id: int
    partnership_id: int
    from_user_id: int
    to_user_id: int
    message_text: str                 # at most 200 characters
    created_at: str = ""
    is_read: bool = False


@dataclass
class Reflection:
    """A user's written look back on one week of their habit."""

    id: int
    user_id: int
    habit_id: int
    week_start_date: str              # ISO date of the week's Monday
    reflection_text: str | None = None  # at most 500 characters
    share_with_partner: bool = False
    created_at: str = ""
