"""
HabitPair — Telegram Bot.

Telegram is the only user interface. Every interaction (creating a habit,
daily check-ins, streak and calendar views, partner requests and notes)
flows through this bot into HabitService.

Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import logging
from datetime import date
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from telegram import Update
from telegram.ext import Application, ApplicationBuilder, CommandHandler, ContextTypes

from src.config import settings
from src.core.calendar_projector import DayStatus
from src.core.dates import today_utc
from src.core.errors import InvalidInputError, NotFoundError, UpstreamUnavailableError

if TYPE_CHECKING:
    from src.core.calendar_projector import MonthCalendar
    from src.core.habit_service import CheckInResult, HabitService, StreakSummary
    from src.core.weekly import WeeklyStats
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

_HELP_TEXT = (
    "HabitPair commands:\n"
    "/habit <Category> <name>: start your daily habit\n"
    "   Categories: Health, Learning, Creativity, Productivity, Wellness\n"
    "/archive: archive your current habit\n"
    "/done [notes]: check in for today\n"
    "/missed [notes]: record that you skipped today\n"
    "/streak: current and longest streak\n"
    "/week: last 7 days\n"
    "/month [YYYY-MM]: calendar for a month\n"
    "/insight: AI summary of your week\n"
    "/pair <user_id> [message]: ask someone to be your partner\n"
    "/accept <user_id> · /decline <user_id>: answer a request\n"
    "/unpair: end your partnership\n"
    "/cheer <text>: send your partner a note (max 200 chars)\n"
    "/inbox: read your partner's new notes\n"
    "/browse [Category]: find people open to pairing\n"
    "/reflect [share] <text>: reflect on this week (max 500 chars)\n"
    "/reflections: read what your partner shared"
)


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unauthorized users.

    Does NOT send any response to strangers — the bot must not reveal
    its existence to unauthorized users.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


def service_errors(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Render service errors as a short reply instead of crashing the handler."""

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        try:
            return await func(update, context)
        except (NotFoundError, InvalidInputError) as exc:
            await update.message.reply_text(str(exc))
        except UpstreamUnavailableError as exc:
            logger.error("Upstream failure in %s: %s", func.__name__, exc)
            await update.message.reply_text(
                "Sorry, I couldn't reach the database. Please try again in a moment."
            )

    return wrapper


def _service(context: ContextTypes.DEFAULT_TYPE) -> HabitService:
    return context.bot_data["service"]


def _args(context: ContextTypes.DEFAULT_TYPE) -> list[str]:
    return list(context.args or [])


def _parse_user_id(raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise InvalidInputError(f"Not a user id: {raw!r}") from exc


def _parse_month_arg(args: list[str], today: date) -> tuple[int, int]:
    """Parse an optional "YYYY-MM" (or "YYYY MM") argument; default to this month."""
    if not args:
        return today.year, today.month
    raw = "-".join(args) if len(args) == 2 else args[0]
    parts = raw.split("-")
    if len(parts) != 2:
        raise InvalidInputError("Use /month YYYY-MM, e.g. /month 2026-03")
    try:
        return int(parts[0]), int(parts[1])
    except ValueError as exc:
        raise InvalidInputError("Use /month YYYY-MM, e.g. /month 2026-03") from exc


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _grid(days: list[bool]) -> str:
    return " ".join("✅" if done else "▫️" for done in days)


def format_check_in(result: CheckInResult) -> str:
    if result.check_in.completed:
        lines = [f"✅ Checked in! Current streak: {result.streak.current_streak} days."]
        if result.milestone:
            lines.append(f"🎉 {result.milestone} milestone!")
    else:
        lines = ["Noted. Tomorrow is a fresh start."]
    if result.ai_message:
        lines.append("")
        lines.append(result.ai_message)
    return "\n".join(lines)


def format_streak(summary: StreakSummary) -> str:
    return (
        f"🔥 Current streak: {summary.current_streak} days\n"
        f"🏆 Longest streak: {summary.longest_streak} days\n"
        f"Total check-ins: {summary.total_checkins}\n"
        f"Last 7 days: {_grid(summary.last_seven_days)}"
    )


def format_week(stats: WeeklyStats) -> str:
    lines = [
        f"Last 7 days: {_grid(stats.last_seven_days)}",
        f"Consistency: {stats.consistency_score}%",
        f"Best day: {stats.best_day}",
    ]
    if stats.average_checkin_time:
        lines.append(f"Average check-in time: {stats.average_checkin_time} UTC")
    return "\n".join(lines)


_STATUS_ICONS = {
    DayStatus.COMPLETED: "✅",
    DayStatus.MISSED: "❌",
    DayStatus.FUTURE: "·",
}


def format_month(cal: MonthCalendar) -> str:
    """Render a Monday-first calendar grid followed by the month's stats."""
    first = date(cal.year, cal.month, 1)
    cells = ["  "] * first.weekday()
    for status in cal.days.values():
        cells.append(_STATUS_ICONS[status])

    rows = ["Mo Tu We Th Fr Sa Su"]
    for i in range(0, len(cells), 7):
        rows.append(" ".join(cells[i:i + 7]))
    rows.append("")
    rows.append(
        f"{first.strftime('%B %Y')}: {cal.stats.completed_days}/{cal.stats.total_days} days "
        f"({cal.stats.success_rate}%)"
    )
    return "\n".join(rows)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    name = update.effective_user.first_name or "there"
    await update.message.reply_text(
        f"Hi {name}! I'm HabitPair: one habit, one partner, one day at a time.\n\n"
        + _HELP_TEXT
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(_HELP_TEXT)


@authorized_only
@service_errors
async def cmd_habit(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    args = _args(context)
    if len(args) < 2:
        await update.message.reply_text("Usage: /habit <Category> <habit name>")
        return
    habit = _service(context).create_habit(
        update.effective_user.id, habit_name=" ".join(args[1:]), category=args[0],
    )
    await update.message.reply_text(
        f"🌱 Started '{habit.habit_name}' ({habit.category.value}) on {habit.start_date}. "
        "Use /done each day you do it."
    )


@authorized_only
@service_errors
async def cmd_archive(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    service = _service(context)
    user_id = update.effective_user.id
    habit = service.get_active_habit(user_id)
    service.archive_habit(user_id, habit.id)
    await update.message.reply_text(
        f"📦 Archived '{habit.habit_name}'. Its history stays available."
    )


async def _check_in(
    update: Update, context: ContextTypes.DEFAULT_TYPE, completed: bool,
) -> None:
    service = _service(context)
    user_id = update.effective_user.id
    habit = service.get_active_habit(user_id)
    notes = " ".join(_args(context)) or None
    result = await service.record_check_in(user_id, habit.id, completed, notes=notes)
    await update.message.reply_text(format_check_in(result))


@authorized_only
@service_errors
async def cmd_done(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _check_in(update, context, completed=True)


@authorized_only
@service_errors
async def cmd_missed(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _check_in(update, context, completed=False)


@authorized_only
@service_errors
async def cmd_streak(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    service = _service(context)
    user_id = update.effective_user.id
    habit = service.get_active_habit(user_id)
    await update.message.reply_text(format_streak(service.compute_streak(user_id, habit.id)))


@authorized_only
@service_errors
async def cmd_week(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    service = _service(context)
    user_id = update.effective_user.id
    habit = service.get_active_habit(user_id)
    await update.message.reply_text(format_week(service.compute_weekly_stats(user_id, habit.id)))


@authorized_only
@service_errors
async def cmd_month(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    service = _service(context)
    user_id = update.effective_user.id
    habit = service.get_active_habit(user_id)
    year, month = _parse_month_arg(_args(context), today_utc())
    cal = service.compute_month_calendar(user_id, habit.id, year, month)
    await update.message.reply_text(format_month(cal))


@authorized_only
@service_errors
async def cmd_insight(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    service = _service(context)
    user_id = update.effective_user.id
    habit = service.get_active_habit(user_id)
    result = await service.generate_weekly_insight(user_id, habit.id)
    facts = result.facts
    text = (
        f"This week: {facts.success_count}/7 · best {facts.best_day} · "
        f"hardest {facts.worst_day} · partner {facts.partner_check_ins}/7"
    )
    if result.message:
        text += "\n\n" + result.message
    await update.message.reply_text(text)


@authorized_only
@service_errors
async def cmd_pair(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    args = _args(context)
    if not args:
        await update.message.reply_text("Usage: /pair <user_id> [message]")
        return
    receiver_id = _parse_user_id(args[0])
    message = " ".join(args[1:]) or None
    await _service(context).request_partnership(update.effective_user.id, receiver_id, message)
    await update.message.reply_text(f"🤝 Partnership request sent to {receiver_id}.")


@authorized_only
@service_errors
async def cmd_accept(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    args = _args(context)
    if not args:
        await update.message.reply_text("Usage: /accept <user_id>")
        return
    requester_id = _parse_user_id(args[0])
    await _service(context).accept_partnership(update.effective_user.id, requester_id)
    await update.message.reply_text(f"🤝 You and {requester_id} are now partners!")


@authorized_only
@service_errors
async def cmd_decline(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    args = _args(context)
    if not args:
        await update.message.reply_text("Usage: /decline <user_id>")
        return
    _service(context).decline_partnership(update.effective_user.id, _parse_user_id(args[0]))
    await update.message.reply_text("Request declined.")


@authorized_only
@service_errors
async def cmd_unpair(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    _service(context).end_partnership(update.effective_user.id)
    await update.message.reply_text("Partnership ended.")


@authorized_only
@service_errors
async def cmd_cheer(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    text = " ".join(_args(context))
    if not text:
        await update.message.reply_text("Usage: /cheer <message>")
        return
    await _service(context).send_encouragement(update.effective_user.id, text)
    await update.message.reply_text("📨 Sent!")


@authorized_only
@service_errors
async def cmd_inbox(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    service = _service(context)
    user_id = update.effective_user.id
    unread = service.list_unread_messages(user_id)
    if not unread:
        await update.message.reply_text("No new notes.")
        return
    for message in unread:
        service.mark_message_read(user_id, message.id)
    await update.message.reply_text(
        "\n".join(f"💬 {m.message_text}" for m in unread)
    )


@authorized_only
@service_errors
async def cmd_browse(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    args = _args(context)
    category = args[0] if args else None
    habits = _service(context).browse_partners(update.effective_user.id, category)
    if not habits:
        await update.message.reply_text("Nobody is looking for a partner right now.")
        return
    lines = ["People open to pairing (use /pair <user_id>):"]
    lines.extend(
        f"{h.user_id}: {h.habit_name} ({h.category.value})" for h in habits[:20]
    )
    await update.message.reply_text("\n".join(lines))


@authorized_only
@service_errors
async def cmd_reflect(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    args = _args(context)
    share = bool(args) and args[0].lower() == "share"
    text = " ".join(args[1:] if share else args)
    if not text:
        await update.message.reply_text("Usage: /reflect [share] <how did this week go?>")
        return
    service = _service(context)
    user_id = update.effective_user.id
    habit = service.get_active_habit(user_id)
    reflection = await service.create_reflection(
        user_id, habit.id, reflection_text=text, share_with_partner=share,
    )
    suffix = " and shared with your partner" if share else ""
    await update.message.reply_text(
        f"📝 Reflection saved for the week of {reflection.week_start_date}{suffix}."
    )


@authorized_only
@service_errors
async def cmd_reflections(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    reflections = _service(context).list_partner_reflections(update.effective_user.id)
    if not reflections:
        await update.message.reply_text("Your partner hasn't shared a reflection yet.")
        return
    await update.message.reply_text(
        "\n\n".join(
            f"Week of {r.week_start_date}:\n{r.reflection_text or '(no text)'}"
            for r in reflections[:5]
        )
    )


# ---------------------------------------------------------------------------
# Application wiring
# ---------------------------------------------------------------------------


def _default_service(notifier: NotificationPort) -> HabitService:
    from src.core.habit_service import HabitService
    from src.data.db import (
        AIResponseDB,
        CheckInDB,
        HabitDB,
        MessageDB,
        PartnershipDB,
        ReflectionDB,
    )

    return HabitService(
        habits=HabitDB(),
        check_ins=CheckInDB(),
        partnerships=PartnershipDB(),
        messages=MessageDB(),
        reflections=ReflectionDB(),
        ai_log=AIResponseDB(),
        notifier=notifier,
    )


def build_app(
    service: HabitService | None = None,
    notifier: NotificationPort | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        service: HabitService instance. Defaults to one over the SQLite stores.
        notifier: Notification port implementation. Defaults to TelegramNotifier
                  (created from the bot instance after app is built).
    """
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    if notifier is None:
        from src.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot)

    if service is None:
        service = _default_service(notifier)

    app.bot_data["service"] = service
    app.bot_data["notifier"] = notifier

    commands = {
        "start": cmd_start,
        "help": cmd_help,
        "habit": cmd_habit,
        "archive": cmd_archive,
        "done": cmd_done,
        "missed": cmd_missed,
        "streak": cmd_streak,
        "week": cmd_week,
        "month": cmd_month,
        "insight": cmd_insight,
        "pair": cmd_pair,
        "accept": cmd_accept,
        "decline": cmd_decline,
        "unpair": cmd_unpair,
        "cheer": cmd_cheer,
        "inbox": cmd_inbox,
        "browse": cmd_browse,
        "reflect": cmd_reflect,
        "reflections": cmd_reflections,
    }
    for name, handler in commands.items():
        app.add_handler(CommandHandler(name, handler))

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting HabitPair bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
