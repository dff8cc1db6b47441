"""Tests for src.config — settings parsing."""

from src.config import Settings


def _settings(**overrides):
    values = {"TELEGRAM_BOT_TOKEN": "t", "LLM_API_KEY": "k"}
    values.update(overrides)
    return Settings(**values)


def test_defaults():
    s = _settings()
    assert s.LLM_PROVIDER == "gemini"
    assert s.LLM_MAX_TOKENS == 300
    assert s.AI_ENABLED is True
    assert s.MONTH_RATE_EXCLUDES_FUTURE is False
    assert s.ALLOWED_USER_IDS == []


def test_user_ids_from_comma_string():
    assert _settings(ALLOWED_USER_IDS="1, 2,,3").ALLOWED_USER_IDS == [1, 2, 3]


def test_flags_from_strings():
    s = _settings(AI_ENABLED="off", MONTH_RATE_EXCLUDES_FUTURE="YES")
    assert s.AI_ENABLED is False
    assert s.MONTH_RATE_EXCLUDES_FUTURE is True


def test_max_tokens_from_string():
    assert _settings(LLM_MAX_TOKENS="512").LLM_MAX_TOKENS == 512
