"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides common fixtures like temp-file stores and a wired service.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("AI_ENABLED", "true")
os.environ.setdefault("MONTH_RATE_EXCLUDES_FUTURE", "false")

from datetime import date
from unittest.mock import AsyncMock

import pytest

# Sunday; the trailing week is Mon 2026-02-09 .. Sun 2026-02-15
TODAY = date(2026, 2, 15)


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_habitpair.db")


@pytest.fixture
def habit_db(tmp_db_path):
    from src.data.db import HabitDB
    return HabitDB(db_path=tmp_db_path)


@pytest.fixture
def check_in_db(tmp_db_path):
    from src.data.db import CheckInDB
    return CheckInDB(db_path=tmp_db_path)


@pytest.fixture
def partnership_db(tmp_db_path):
    from src.data.db import PartnershipDB
    return PartnershipDB(db_path=tmp_db_path)


@pytest.fixture
def message_db(tmp_db_path):
    from src.data.db import MessageDB
    return MessageDB(db_path=tmp_db_path)


@pytest.fixture
def ai_log_db(tmp_db_path):
    from src.data.db import AIResponseDB
    return AIResponseDB(db_path=tmp_db_path)


@pytest.fixture
def reflection_db(tmp_db_path):
    from src.data.db import ReflectionDB
    return ReflectionDB(db_path=tmp_db_path)


@pytest.fixture
def notifier():
    mock = AsyncMock()
    mock.send_message = AsyncMock()
    return mock


@pytest.fixture
def service(
    habit_db, check_in_db, partnership_db, message_db, reflection_db, ai_log_db, notifier,
):
    """A HabitService over temp-file stores with a mock notifier."""
    from src.core.habit_service import HabitService
    return HabitService(
        habits=habit_db,
        check_ins=check_in_db,
        partnerships=partnership_db,
        messages=message_db,
        reflections=reflection_db,
        ai_log=ai_log_db,
        notifier=notifier,
        month_rate_excludes_future=False,
    )
