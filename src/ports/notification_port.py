"""Notification port — abstract interface for messaging a user.

The service layer uses it to reach a partner (milestones, encouragement
notes) without knowing which messenger delivers it.
"""

from __future__ import annotations

from typing import Protocol


class NotificationPort(Protocol):
    """Abstract notification interface used by the service layer."""

    async def send_message(self, user_id: int, text: str) -> None: ...
