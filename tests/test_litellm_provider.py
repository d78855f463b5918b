"""Tests for LiteLLM provider and model mapping."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from providers.litellm_provider import _to_litellm_model, LiteLLMProvider
from providers.base import LLMResponse


class TestToLiteLLMModel:
    """Test _to_litellm_model mapping."""

    def test_openai_default(self):
        assert _to_litellm_model("openai", None) == "gpt-4o-mini"

    def test_openai_explicit_model(self):
        assert _to_litellm_model("openai", "gpt-4o") == "gpt-4o"
        assert _to_litellm_model("openai", "gpt-4.1-mini") == "gpt-4.1-mini"

    def test_anthropic_default(self):
        assert _to_litellm_model("anthropic", None).startswith("anthropic/claude")

    def test_anthropic_haiku(self):
        assert "haiku" in _to_litellm_model("anthropic", "claude-haiku").lower()

    def test_synonyms(self):
        assert _to_litellm_model("claude", None) == _to_litellm_model("anthropic", None)
        assert _to_litellm_model("google", None) == "gemini/gemini-2.0-flash"

    def test_gemini_explicit(self):
        assert _to_litellm_model("gemini", "gemini-2.5-pro") == "gemini/gemini-2.5-pro"

    def test_deepseek_default(self):
        assert _to_litellm_model("deepseek", None) == "deepseek/deepseek-chat"

    def test_unknown_model_gets_provider_prefix(self):
        assert _to_litellm_model("deepseek", "deepseek-v4") == "deepseek/deepseek-v4"
        assert _to_litellm_model("openai", "o3-mini") == "o3-mini"

    def test_prefixed_model_passes_through(self):
        assert _to_litellm_model("anthropic", "bedrock/claude") == "bedrock/claude"

    def test_no_provider_no_model(self):
        assert _to_litellm_model(None, None) == "gpt-4o-mini"


@pytest.fixture
def completion_response():
    resp = MagicMock()
    resp.choices = [MagicMock(finish_reason="stop")]
    resp.choices[0].message.content = "Hello, world."
    resp.usage = MagicMock(prompt_tokens=10, completion_tokens=5)
    resp._hidden_params = {"response_cost": 0.001}
    resp.model = "gpt-4o-mini"
    return resp


@pytest.mark.asyncio
class TestLiteLLMProvider:
    """Test LiteLLMProvider with mocked litellm."""

    async def test_complete_returns_llm_response(self, completion_response):
        with patch("litellm.acompletion", new=AsyncMock(return_value=completion_response)):
            provider = LiteLLMProvider(default_model="gpt-4o-mini")
            result = await provider.complete("You are helpful.", "Hi", max_tokens=100)
        assert isinstance(result, LLMResponse)
        assert result.content == "Hello, world."
        assert result.input_tokens == 10
        assert result.output_tokens == 5
        assert result.cost == 0.001
        assert result.model == "gpt-4o-mini"
        assert result.provider == "litellm"
        assert not result.truncated

    async def test_complete_passes_messages_and_metadata(self, completion_response):
        mock = AsyncMock(return_value=completion_response)
        with patch("litellm.acompletion", new=mock):
            provider = LiteLLMProvider(default_model="gpt-4o-mini", metadata={"document_type": "pid"})
            await provider.complete("Sys", "User", temperature=0.2)
        call_kw = mock.call_args.kwargs
        assert call_kw["metadata"] == {"document_type": "pid"}
        assert call_kw["messages"][0] == {"role": "system", "content": "Sys"}
        assert call_kw["temperature"] == 0.2

    async def test_length_finish_marks_truncated(self, completion_response):
        completion_response.choices[0].finish_reason = "length"
        completion_response._hidden_params = {}
        with patch("litellm.acompletion", new=AsyncMock(return_value=completion_response)):
            result = await LiteLLMProvider(default_model="gpt-4o-mini").complete("s", "u")
        assert result.truncated
        assert result.cost is None


class TestLiteLLMProviderProperties:
    """Test provider metadata."""

    def test_name_and_default_model(self):
        provider = LiteLLMProvider(default_model="gemini/gemini-2.0-flash")
        assert provider.name == "litellm"
        assert provider.default_model == "gemini/gemini-2.0-flash"

    def test_for_provider(self):
        assert LiteLLMProvider.for_provider("deepseek").default_model == "deepseek/deepseek-chat"

    def test_deepseek_is_rate_limited(self):
        assert LiteLLMProvider(default_model="deepseek/deepseek-chat").rate_limited
        assert not LiteLLMProvider(default_model="gpt-4o-mini").rate_limited

    def test_is_available(self):
        assert LiteLLMProvider(default_model="gpt-4o-mini").is_available() is True
        assert LiteLLMProvider(default_model="").is_available() is False
