"""Tests for src.core.llm — provider selection and routing."""

import pytest
from unittest.mock import AsyncMock, patch

from src.core import llm


@pytest.fixture(autouse=True)
def reset_provider():
    """Clear the lazily selected provider around each test."""
    llm._provider_fn = None
    yield
    llm._provider_fn = None


class TestSelectProvider:
    def test_default_model_per_provider(self):
        with patch("src.config.settings") as mock_settings:
            mock_settings.LLM_PROVIDER = "OpenAI"
            mock_settings.LLM_MODEL = ""
            mock_settings.LLM_API_KEY = "k"
            fn, model, key = llm._select_provider()
        assert fn is llm._complete_openai
        assert model == "gpt-4o-mini"
        assert key == "k"

    def test_explicit_model_wins(self):
        with patch("src.config.settings") as mock_settings:
            mock_settings.LLM_PROVIDER = "anthropic"
            mock_settings.LLM_MODEL = "custom-model"
            mock_settings.LLM_API_KEY = "k"
            _, model, _ = llm._select_provider()
        assert model == "custom-model"

    def test_unknown_provider(self):
        with patch("src.config.settings") as mock_settings:
            mock_settings.LLM_PROVIDER = "mystery"
            with pytest.raises(ValueError, match="Unknown LLM_PROVIDER"):
                llm._select_provider()


class TestComplete:
    @pytest.mark.asyncio
    async def test_routes_to_selected_provider_once(self):
        provider = AsyncMock(return_value="hello")
        with patch.object(llm, "_select_provider", return_value=(provider, "m", "key")) as sel:
            assert await llm.complete("sys", "hi", max_tokens=50) == "hello"
            assert await llm.complete("sys", "again") == "hello"
        sel.assert_called_once()
        provider.assert_called_with("key", "m", "sys", "again", 300, llm.DEFAULT_TEMPERATURE)

    @pytest.mark.asyncio
    async def test_provider_errors_propagate(self):
        provider = AsyncMock(side_effect=RuntimeError("rate limited"))
        with patch.object(llm, "_select_provider", return_value=(provider, "m", "key")):
            with pytest.raises(RuntimeError):
                await llm.complete("sys", "hi")
