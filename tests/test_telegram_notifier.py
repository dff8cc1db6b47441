"""Tests for src.adapters.telegram_notifier."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from src.adapters.telegram_notifier import TelegramNotifier


@pytest.mark.asyncio
async def test_send_message_uses_user_id_as_chat():
    bot = MagicMock()
    bot.send_message = AsyncMock()
    await TelegramNotifier(bot).send_message(42, "Your partner hit a 7-day streak!")
    bot.send_message.assert_called_once_with(chat_id=42, text="Your partner hit a 7-day streak!")


@pytest.mark.asyncio
async def test_bot_errors_propagate():
    bot = MagicMock()
    bot.send_message = AsyncMock(side_effect=RuntimeError("chat not found"))
    with pytest.raises(RuntimeError):
        await TelegramNotifier(bot).send_message(42, "hi")
