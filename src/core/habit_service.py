"""
HabitPair — UI-Agnostic Habit Service.

Orchestrates every boundary operation: verify ownership -> fetch history
once -> run the pure analytics modules -> optionally ask the AI coach ->
return structured result objects.

Each UI adapter (Telegram today) calls this service and renders the results
in its own way. NotFoundError and InvalidInputError are terminal for the
request; AI text and partner notifications are best-effort and never fail it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING

from src.core import coach
from src.core.calendar_projector import MonthCalendar, last_day_of_month, project_month
from src.core.dates import now_time_utc, parse_date, parse_year_month, today_utc
from src.core.errors import InvalidInputError, NotFoundError
from src.core.insights import (
    WeeklyInsightFacts,
    build_encouragement_facts,
    build_streak_break_facts,
    build_weekly_insight_facts,
)
from src.core.streaks import StreakState, compute_streaks, current_streak
from src.core.weekly import WeeklyStats, compute_weekly_stats, in_window, last_seven_days
from src.data.models import HabitCategory, PartnershipStatus, PrivacySetting

if TYPE_CHECKING:
    from src.data.db import AIResponseDB, HabitDB, MessageDB, PartnershipDB, ReflectionDB
    from src.data.models import CheckIn, Habit, Message, Partnership, Reflection
    from src.ports.day_record_source import CheckInStore
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

MAX_HABIT_NAME = 100
MAX_MESSAGE_LENGTH = 200
MAX_REFLECTION_LENGTH = 500


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class CheckInResult:
    check_in: CheckIn
    streak: StreakState
    milestone: str | None = None
    ai_message: str | None = None
    response_type: str | None = None   # "post-checkin" | "streak-break"


@dataclass
class StreakSummary:
    current_streak: int
    longest_streak: int
    total_checkins: int
    last_seven_days: list[bool] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "total_checkins": self.total_checkins,
            "last_seven_days": list(self.last_seven_days),
        }


@dataclass
class Overview:
    current_streak: int
    longest_streak: int
    total_checkins: int
    success_rate: float
    days_since_started: int

    def to_dict(self) -> dict:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "total_checkins": self.total_checkins,
            "success_rate": self.success_rate,
            "days_since_started": self.days_since_started,
        }


@dataclass
class InsightResult:
    facts: WeeklyInsightFacts
    message: str | None = None


# ---------------------------------------------------------------------------
# Input parsing
# ---------------------------------------------------------------------------


def parse_category(value: HabitCategory | str) -> HabitCategory:
    """Accept an enum member or its name, case-insensitively."""
    if isinstance(value, HabitCategory):
        return value
    for category in HabitCategory:
        if category.value.lower() == str(value).strip().lower():
            return category
    valid = ", ".join(c.value for c in HabitCategory)
    raise InvalidInputError(f"Invalid category {value!r}. Choose one of: {valid}")


def parse_privacy(value: PrivacySetting | str) -> PrivacySetting:
    if isinstance(value, PrivacySetting):
        return value
    try:
        return PrivacySetting(str(value).strip().lower())
    except ValueError as exc:
        raise InvalidInputError(f"Invalid privacy setting: {value!r}") from exc


def _validate_habit_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise InvalidInputError("Habit name is required")
    if len(name) > MAX_HABIT_NAME:
        raise InvalidInputError(f"Habit name must be {MAX_HABIT_NAME} characters or less")
    return name


# ---------------------------------------------------------------------------
# HabitService
# ---------------------------------------------------------------------------


class HabitService:
    """Stateless service over the stores; streaks are recomputed on every call."""

    def __init__(
        self,
        habits: HabitDB,
        check_ins: CheckInStore,
        partnerships: PartnershipDB | None = None,
        messages: MessageDB | None = None,
        reflections: ReflectionDB | None = None,
        ai_log: AIResponseDB | None = None,
        notifier: NotificationPort | None = None,
        month_rate_excludes_future: bool | None = None,
    ) -> None:
        self._habits = habits
        self._check_ins = check_ins
        self._partnerships = partnerships
        self._messages = messages
        self._reflections = reflections
        self._ai_log = ai_log
        self._notifier = notifier
        if month_rate_excludes_future is None:
            from src.config import settings
            month_rate_excludes_future = settings.MONTH_RATE_EXCLUDES_FUTURE
        self._month_rate_excludes_future = month_rate_excludes_future

    # ------------------------------------------------------------------
    # Habits
    # ------------------------------------------------------------------

    def _owned_habit(self, user_id: int, habit_id: int) -> Habit:
        habit = self._habits.get_habit(habit_id, user_id=user_id)
        if habit is None:
            raise NotFoundError("Habit not found")
        return habit

    def create_habit(
        self,
        user_id: int,
        habit_name: str,
        category: HabitCategory | str,
        start_date: str | date | None = None,
        privacy_setting: PrivacySetting | str | None = None,
    ) -> Habit:
        """Create the user's single active habit."""
        name = _validate_habit_name(habit_name)
        cat = parse_category(category)
        start = parse_date(start_date) if start_date is not None else today_utc()
        privacy = (
            parse_privacy(privacy_setting)
            if privacy_setting is not None
            else PrivacySetting.PARTNER_ONLY
        )
        if self._habits.get_active_habit(user_id) is not None:
            raise InvalidInputError(
                "You already have an active habit. Please archive it first."
            )
        return self._habits.add_habit(user_id, name, cat, start.isoformat(), privacy)

    def get_active_habit(self, user_id: int) -> Habit:
        habit = self._habits.get_active_habit(user_id)
        if habit is None:
            raise NotFoundError("No active habit found")
        return habit

    def list_archived_habits(self, user_id: int) -> list[Habit]:
        return self._habits.list_archived(user_id)

    def update_habit(
        self,
        user_id: int,
        habit_id: int,
        habit_name: str | None = None,
        privacy_setting: PrivacySetting | str | None = None,
    ) -> Habit:
        self._owned_habit(user_id, habit_id)
        name = _validate_habit_name(habit_name) if habit_name is not None else None
        privacy = parse_privacy(privacy_setting) if privacy_setting is not None else None
        return self._habits.update_habit(habit_id, habit_name=name, privacy_setting=privacy)

    def archive_habit(self, user_id: int, habit_id: int) -> Habit:
        habit = self._owned_habit(user_id, habit_id)
        if not habit.is_active:
            raise InvalidInputError("Habit is already archived")
        return self._habits.archive_habit(habit_id)

    # ------------------------------------------------------------------
    # Check-ins
    # ------------------------------------------------------------------

    async def record_check_in(
        self,
        user_id: int,
        habit_id: int,
        completed: bool,
        notes: str | None = None,
        on: str | date | None = None,
        today: date | None = None,
    ) -> CheckInResult:
        """Create or update the check-in for a day (default: today).

        After storing, streaks are recomputed from the full history. The
        first report for a day drives the side effects: a completed day gets
        an encouragement message (and a milestone, when the streak hits one);
        a missed day gets streak-break support if it ended a running streak.
        Re-recording a day only updates the row.
        """
        habit = self._owned_habit(user_id, habit_id)
        if not habit.is_active:
            raise InvalidInputError("Archived habits are read-only")
        if today is None:
            today = today_utc()
        day = parse_date(on) if on is not None else today
        if day > today:
            raise InvalidInputError("Cannot check in for a future date")

        existing = self._check_ins.get_check_in(habit.id, day.isoformat())
        check_in = self._check_ins.upsert_check_in(
            habit_id=habit.id,
            user_id=user_id,
            on_date=day.isoformat(),
            completed=completed,
            check_in_time=now_time_utc() if day == today else None,
            notes=(notes or "").strip() or None,
        )

        history = self._check_ins.get_history(habit.id)
        streak = compute_streaks(history, today)
        result = CheckInResult(check_in=check_in, streak=streak)
        if existing is not None:
            logger.info("Check-in for habit #%d on %s updated", habit.id, day.isoformat())
            return result

        if completed:
            facts = build_encouragement_facts(
                habit, streak.current_streak, in_window(history, today), today,
            )
            result.milestone = facts.milestone
            result.response_type = "post-checkin"
            result.ai_message = await coach.encouragement(facts)
            self._log_ai(user_id, "post-checkin", {
                "habit_id": habit.id,
                "streak": streak.current_streak,
                "milestone": facts.milestone,
            }, result.ai_message)
            if facts.milestone:
                await self._notify_partner(
                    user_id,
                    f"Your partner just hit a {facts.milestone} streak on "
                    f"'{habit.habit_name}'!",
                )
        else:
            broken = current_streak(history, day - timedelta(days=1))
            if broken > 0:
                facts = build_streak_break_facts(
                    habit,
                    broken_streak_length=broken,
                    total_days_active=self._check_ins.count_completed(habit.id),
                    previous_longest_streak=streak.longest_streak,
                )
                result.response_type = "streak-break"
                result.ai_message = await coach.streak_break_support(facts)
                self._log_ai(user_id, "streak-break", {
                    "habit_id": habit.id, "broken_streak": broken,
                }, result.ai_message)

        return result

    def get_today_check_in(
        self, user_id: int, habit_id: int, today: date | None = None,
    ) -> CheckIn | None:
        habit = self._owned_habit(user_id, habit_id)
        day = today or today_utc()
        return self._check_ins.get_check_in(habit.id, day.isoformat())

    def get_history(
        self,
        user_id: int,
        habit_id: int,
        start_date: str | date | None = None,
        end_date: str | date | None = None,
    ) -> list[CheckIn]:
        """Check-in history, newest first, within an optional inclusive range."""
        habit = self._owned_habit(user_id, habit_id)
        start = parse_date(start_date) if start_date is not None else None
        end = parse_date(end_date) if end_date is not None else None
        if start and end and start > end:
            raise InvalidInputError("Start date must not be after end date")
        return self._check_ins.get_history(
            habit.id,
            start_date=start.isoformat() if start else None,
            end_date=end.isoformat() if end else None,
            newest_first=True,
        )

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def compute_streak(
        self, user_id: int, habit_id: int, today: date | None = None,
    ) -> StreakSummary:
        habit = self._owned_habit(user_id, habit_id)
        today = today or today_utc()
        history = self._check_ins.get_history(habit.id)
        streak = compute_streaks(history, today)
        return StreakSummary(
            current_streak=streak.current_streak,
            longest_streak=streak.longest_streak,
            total_checkins=sum(1 for r in history if r.completed),
            last_seven_days=last_seven_days(history, today),
        )

    def compute_overview(
        self, user_id: int, habit_id: int, today: date | None = None,
    ) -> Overview:
        """All-time figures: streaks, total completions, success rate."""
        habit = self._owned_habit(user_id, habit_id)
        today = today or today_utc()
        history = self._check_ins.get_history(habit.id)
        streak = compute_streaks(history, today)
        completed = sum(1 for r in history if r.completed)
        rate = round(completed / len(history) * 100, 2) if history else 0.0
        return Overview(
            current_streak=streak.current_streak,
            longest_streak=streak.longest_streak,
            total_checkins=completed,
            success_rate=rate,
            days_since_started=(today - parse_date(habit.start_date)).days,
        )

    def compute_weekly_stats(
        self,
        user_id: int,
        habit_id: int,
        reference_date: str | date | None = None,
    ) -> WeeklyStats:
        habit = self._owned_habit(user_id, habit_id)
        ref = parse_date(reference_date) if reference_date is not None else today_utc()
        history = self._check_ins.get_history(
            habit.id,
            start_date=(ref - timedelta(days=6)).isoformat(),
            end_date=ref.isoformat(),
        )
        return compute_weekly_stats(history, ref)

    def compute_month_calendar(
        self,
        user_id: int,
        habit_id: int,
        year: int | str,
        month: int | str,
        today: date | None = None,
    ) -> MonthCalendar:
        habit = self._owned_habit(user_id, habit_id)
        y, m = parse_year_month(year, month)
        first = date(y, m, 1)
        last = date(y, m, last_day_of_month(y, m))
        history = self._check_ins.get_history(
            habit.id, start_date=first.isoformat(), end_date=last.isoformat(),
        )
        return project_month(
            y, m,
            habit_start=habit.start_date,
            today=today or today_utc(),
            completed_dates=[r.date for r in history if r.completed],
            exclude_future_from_rate=self._month_rate_excludes_future,
        )

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------

    def build_insight_facts(
        self,
        user_id: int,
        habit_id: int,
        today: date | None = None,
    ) -> WeeklyInsightFacts:
        """Assemble the weekly fact bundle, compared against the accepted partner."""
        habit = self._owned_habit(user_id, habit_id)
        today = today or today_utc()
        history = self._check_ins.get_history(habit.id)
        streak = compute_streaks(history, today)

        partner_id = self.get_partner_id(user_id)
        partner_check_ins = 0
        if partner_id is not None:
            partner_check_ins = self._check_ins.count_completed_for_user(
                partner_id,
                (today - timedelta(days=6)).isoformat(),
                today.isoformat(),
            )

        return build_weekly_insight_facts(
            habit,
            in_window(history, today),
            partner_check_ins=partner_check_ins,
            current_streak=streak.current_streak,
            longest_streak=streak.longest_streak,
            today=today,
        )

    async def generate_weekly_insight(
        self, user_id: int, habit_id: int, today: date | None = None,
    ) -> InsightResult:
        facts = self.build_insight_facts(user_id, habit_id, today=today)
        message = await coach.weekly_insight(facts)
        self._log_ai(user_id, "weekly-insight", {
            "habit_id": habit_id,
            "week_check_ins": facts.week_check_ins,
            "best_day": facts.best_day,
            "worst_day": facts.worst_day,
        }, message)
        return InsightResult(facts=facts, message=message)

    # ------------------------------------------------------------------
    # Partnerships
    # ------------------------------------------------------------------

    def _require_partnerships(self) -> PartnershipDB:
        if self._partnerships is None:
            raise NotFoundError("Partnerships are not available")
        return self._partnerships

    def get_partner_id(self, user_id: int) -> int | None:
        if self._partnerships is None:
            return None
        active = self._partnerships.get_active(user_id)
        return active.other(user_id) if active else None

    def browse_partners(
        self, user_id: int, category: HabitCategory | str | None = None,
    ) -> list[Habit]:
        """Active habits of users open to pairing, optionally in one category.

        Private habits are never listed, and neither are users who already
        have an accepted partnership.
        """
        cat = parse_category(category) if category is not None else None
        candidates = self._habits.list_discoverable(user_id, cat)
        paired = self._partnerships.list_paired_user_ids() if self._partnerships else set()
        return [h for h in candidates if h.user_id not in paired]

    async def request_partnership(
        self, user_id: int, receiver_id: int, request_message: str | None = None,
    ) -> Partnership:
        db = self._require_partnerships()
        if receiver_id == user_id:
            raise InvalidInputError("Cannot request partnership with yourself")
        if db.get_active(user_id) is not None:
            raise InvalidInputError("You already have an active partnership")
        if db.find_pending(user_id, receiver_id) is not None:
            raise InvalidInputError("Partnership request already sent")

        partnership = db.add_request(user_id, receiver_id, request_message)
        note = f"\n\"{request_message}\"" if request_message else ""
        await self._notify(
            receiver_id,
            f"User {user_id} wants to be your accountability partner.{note}\n"
            f"Reply /accept {user_id} or /decline {user_id}.",
        )
        return partnership

    async def accept_partnership(self, user_id: int, requester_id: int) -> Partnership:
        db = self._require_partnerships()
        pending = db.find_pending(requester_id, user_id)
        if pending is None:
            raise NotFoundError("Partnership request not found")
        if db.get_active(user_id) is not None or db.get_active(requester_id) is not None:
            raise InvalidInputError("One of you already has an active partnership")

        db.set_status(pending.id, PartnershipStatus.ACCEPTED)
        pending.status = PartnershipStatus.ACCEPTED
        await self._notify(requester_id, f"User {user_id} accepted your partnership request!")
        return pending

    def decline_partnership(self, user_id: int, requester_id: int) -> Partnership:
        db = self._require_partnerships()
        pending = db.find_pending(requester_id, user_id)
        if pending is None:
            raise NotFoundError("Partnership request not found")
        db.set_status(pending.id, PartnershipStatus.DECLINED)
        pending.status = PartnershipStatus.DECLINED
        return pending

    def end_partnership(self, user_id: int) -> Partnership:
        db = self._require_partnerships()
        active = db.get_active(user_id)
        if active is None:
            raise NotFoundError("Partnership not found")
        db.set_status(active.id, PartnershipStatus.ENDED)
        active.status = PartnershipStatus.ENDED
        return active

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def send_encouragement(self, user_id: int, message_text: str) -> Message:
        """Store a short note for the partner and deliver it best-effort."""
        text = (message_text or "").strip()
        if not text:
            raise InvalidInputError("Message text is required")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise InvalidInputError(
                f"Message must be {MAX_MESSAGE_LENGTH} characters or less"
            )
        if self._messages is None:
            raise NotFoundError("Messages are not available")
        active = self._require_partnerships().get_active(user_id)
        if active is None:
            raise NotFoundError("No active partnership found")

        partner_id = active.other(user_id)
        message = self._messages.add_message(active.id, user_id, partner_id, text)
        await self._notify(partner_id, f"💬 From your partner: {text}")
        return message

    def list_messages(self, user_id: int, limit: int = 50) -> list[Message]:
        if self._messages is None:
            return []
        active = self._require_partnerships().get_active(user_id)
        if active is None:
            raise NotFoundError("No active partnership found")
        return self._messages.list_for_partnership(active.id, limit=limit)

    def list_unread_messages(self, user_id: int) -> list[Message]:
        if self._messages is None:
            return []
        return self._messages.list_unread(user_id)

    def mark_message_read(self, user_id: int, message_id: int) -> Message:
        """Mark a message as read. Only its recipient may do so."""
        message = self._messages.get_message(message_id) if self._messages else None
        if message is None or message.to_user_id != user_id:
            raise NotFoundError("Message not found")
        return self._messages.mark_read(message_id)

    # ------------------------------------------------------------------
    # Reflections
    # ------------------------------------------------------------------

    def _require_reflections(self) -> ReflectionDB:
        if self._reflections is None:
            raise NotFoundError("Reflections are not available")
        return self._reflections

    @staticmethod
    def _validate_reflection_text(text: str | None) -> str | None:
        text = (text or "").strip() or None
        if text is not None and len(text) > MAX_REFLECTION_LENGTH:
            raise InvalidInputError(
                f"Reflection text must be {MAX_REFLECTION_LENGTH} characters or less"
            )
        return text

    async def create_reflection(
        self,
        user_id: int,
        habit_id: int,
        reflection_text: str | None = None,
        share_with_partner: bool = False,
        week_start_date: str | date | None = None,
        today: date | None = None,
    ) -> Reflection:
        """Write a weekly reflection; the week defaults to the one containing today.

        A shared reflection is also delivered to the partner, best-effort.
        """
        db = self._require_reflections()
        habit = self._owned_habit(user_id, habit_id)
        text = self._validate_reflection_text(reflection_text)
        if week_start_date is not None:
            week_start = parse_date(week_start_date)
        else:
            today = today or today_utc()
            week_start = today - timedelta(days=today.weekday())

        reflection = db.add_reflection(
            user_id, habit.id, week_start.isoformat(), text, share_with_partner,
        )
        if share_with_partner and text:
            await self._notify_partner(
                user_id, f"📝 Your partner's reflection on '{habit.habit_name}': {text}",
            )
        return reflection

    def update_reflection(
        self,
        user_id: int,
        reflection_id: int,
        reflection_text: str | None = None,
        share_with_partner: bool | None = None,
    ) -> Reflection:
        db = self._require_reflections()
        if db.get_reflection(reflection_id, user_id=user_id) is None:
            raise NotFoundError("Reflection not found")
        text = (
            self._validate_reflection_text(reflection_text)
            if reflection_text is not None
            else None
        )
        return db.update_reflection(
            reflection_id, reflection_text=text, share_with_partner=share_with_partner,
        )

    def list_reflections(self, user_id: int, habit_id: int | None = None) -> list[Reflection]:
        """The user's own reflections, most recent week first."""
        if habit_id is not None:
            self._owned_habit(user_id, habit_id)
        return self._require_reflections().list_for_user(user_id, habit_id=habit_id)

    def list_partner_reflections(self, user_id: int) -> list[Reflection]:
        """Reflections the accepted partner chose to share."""
        partner_id = self.get_partner_id(user_id)
        if partner_id is None:
            raise NotFoundError("No active partnership found")
        return self._require_reflections().list_for_user(partner_id, shared_only=True)

    # ------------------------------------------------------------------
    # Best-effort side effects
    # ------------------------------------------------------------------

    def _log_ai(
        self, user_id: int, response_type: str, context: dict, message: str | None,
    ) -> None:
        if self._ai_log is None or message is None:
            return
        try:
            self._ai_log.log_response(user_id, response_type, context, message)
        except Exception as exc:
            logger.error("Failed to log AI %s response: %s", response_type, exc)

    async def _notify(self, user_id: int, text: str) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.send_message(user_id, text)
        except Exception as exc:
            logger.error("Failed to notify user %d: %s", user_id, exc)

    async def _notify_partner(self, user_id: int, text: str) -> None:
        partner_id = self.get_partner_id(user_id)
        if partner_id is not None:
            await self._notify(partner_id, text)
