"""
HabitPair — AI Coach.

Turns insight fact bundles into prompts and asks the LLM for a short
message. Generated text is optional enrichment: any failure is logged and
``None`` is returned so the calling request still succeeds.
"""

from __future__ import annotations

import logging

from src.config import settings
from src.core.insights import EncouragementFacts, StreakBreakFacts, WeeklyInsightFacts
from src.core.llm import complete

logger = logging.getLogger(__name__)

_ENCOURAGEMENT_SYSTEM = (
    "You are a warm, supportive habit coach. You write short personal notes "
    "to people who just checked in on their daily habit. Be specific, avoid "
    "cliches, and never lecture."
)

_WEEKLY_SYSTEM = (
    "You are a thoughtful habit analyst. You read a week of check-in data and "
    "write a concise, encouraging summary grounded in the numbers."
)

_STREAK_BREAK_SYSTEM = (
    "You are a compassionate habit coach. Someone just missed a day and lost "
    "their streak. Be understanding, never judgmental, and point them forward."
)


def _grid(days: list[bool]) -> str:
    return " ".join("✓" if done else "✗" for done in days)


# ---------------------------------------------------------------------------
# Prompt rendering
# ---------------------------------------------------------------------------


def render_encouragement_prompt(facts: EncouragementFacts) -> str:
    lines = [
        f"Habit: {facts.habit_name}",
        f"Category: {facts.category}",
        f"Current streak: {facts.streak_length} days",
        f"Last 7 days: {_grid(facts.last_seven_days)}",
        f"Today is {facts.day_of_week}.",
    ]
    if facts.milestone:
        lines.append(f"They just reached a {facts.milestone} milestone!")
    focus = (
        "help them keep building momentum"
        if facts.streak_length < 7
        else "recognise how consistent they have become"
    )
    lines.append("")
    lines.append(
        "Write a 50-150 word message that celebrates today's check-in, "
        f"mentions the streak{' and milestone' if facts.milestone else ''}, "
        f"and {focus}. Use the habit name naturally."
    )
    return "\n".join(lines)


def render_weekly_insight_prompt(facts: WeeklyInsightFacts) -> str:
    days = ", ".join(
        f"{name}: {'✓' if done else '✗'}"
        for name, done in zip(facts.week_labels, facts.week_check_ins)
    )
    return "\n".join([
        f"Habit: {facts.habit_name} ({facts.category})",
        f"This week: {facts.success_count}/7 check-ins",
        f"Days: {days}",
        f"Best day: {facts.best_day}",
        f"Hardest day: {facts.worst_day}",
        f"Check-in times: {', '.join(facts.check_in_times)}",
        f"Current streak: {facts.current_streak} (longest {facts.longest_streak})",
        f"Partner's check-ins: {facts.partner_check_ins}/7",
        "",
        "Write a 100-200 word weekly summary: what went well, one pattern you "
        "notice, ONE concrete suggestion, and a brief nod to their partner.",
    ])


def render_streak_break_prompt(facts: StreakBreakFacts) -> str:
    return "\n".join([
        f"Habit: {facts.habit_name}",
        f"Streak that just ended: {facts.broken_streak_length} days",
        f"Total completed days: {facts.total_days_active}",
        f"Longest streak so far: {facts.previous_longest_streak} days",
        "",
        "Write a 75-150 word supportive message. Acknowledge the miss without "
        "judgment, remind them their progress still counts, and encourage a "
        "restart tomorrow.",
    ])


# ---------------------------------------------------------------------------
# Generation (best-effort)
# ---------------------------------------------------------------------------


async def _generate(kind: str, system: str, prompt: str) -> str | None:
    if not settings.AI_ENABLED:
        return None
    try:
        text = await complete(system, prompt, max_tokens=settings.LLM_MAX_TOKENS)
    except Exception as exc:
        logger.error("AI %s generation failed: %s", kind, exc)
        return None
    text = (text or "").strip()
    return text or None


async def encouragement(facts: EncouragementFacts) -> str | None:
    return await _generate(
        "post-checkin", _ENCOURAGEMENT_SYSTEM, render_encouragement_prompt(facts),
    )


async def weekly_insight(facts: WeeklyInsightFacts) -> str | None:
    return await _generate(
        "weekly-insight", _WEEKLY_SYSTEM, render_weekly_insight_prompt(facts),
    )


async def streak_break_support(facts: StreakBreakFacts) -> str | None:
    return await _generate(
        "streak-break", _STREAK_BREAK_SYSTEM, render_streak_break_prompt(facts),
    )
