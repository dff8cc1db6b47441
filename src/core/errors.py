"""Error kinds surfaced by the service layer to every UI adapter."""

from __future__ import annotations


class HabitPairError(Exception):
    """Base class for all HabitPair errors."""


class NotFoundError(HabitPairError):
    """Habit, record or partnership is absent, or not owned by the caller."""


class InvalidInputError(HabitPairError):
    """Malformed date, out-of-range month, or a request that breaks a rule."""


class UpstreamUnavailableError(HabitPairError):
    """The data store or another external service failed."""
