"""Tests for the LLM client: JSON extraction, repair and the prompt guard."""

import json

import pytest
from pydantic import BaseModel

from providers.client import LLMOutputError, Prompt, repair_truncated_json, strip_markdown_fences
from privacy import PromptPIIError

from fakes import FakeProvider


class Item(BaseModel):
    name: str
    tags: list = []


class TestStripMarkdownFences:
    """Test fence removal."""

    def test_json_fence(self):
        assert strip_markdown_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_fence(self):
        assert strip_markdown_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_no_fence(self):
        assert strip_markdown_fences('  {"a": 1} ') == '{"a": 1}'

    def test_unterminated_fence(self):
        assert strip_markdown_fences('```json\n{"a": 1}') == '{"a": 1}'


class TestRepairTruncatedJson:
    """Test closing of truncated JSON."""

    def test_complete_json_is_not_repaired(self):
        assert repair_truncated_json('{"a": 1}') is None

    def test_open_string_and_array(self):
        repaired = repair_truncated_json('{"name": "x", "tags": ["a", "b')
        assert json.loads(repaired) == {"name": "x", "tags": ["a", "b"]}

    def test_trailing_comma(self):
        repaired = repair_truncated_json('{"name": "x", "tags": ["a",')
        assert json.loads(repaired) == {"name": "x", "tags": ["a"]}

    def test_dangling_key(self):
        repaired = repair_truncated_json('{"name": "x", "tags":')
        assert json.loads(repaired) == {"name": "x"}

    def test_not_json(self):
        assert repair_truncated_json("no braces here") is None


@pytest.mark.asyncio
class TestLLMClient:
    """Test generate_json/generate_text against a fake provider."""

    async def test_generate_json_validates(self, make_client):
        client = make_client(FakeProvider(replies=['```json\n{"name": "x", "tags": ["a"]}\n```']))
        result = await client.generate_json(Prompt(system="s", user="u"), Item)
        assert result.value == Item(name="x", tags=["a"])
        assert result.usage.input_tokens == 100
        assert result.usage.cost_usd == 0.001
        assert not result.repaired

    async def test_schema_is_appended_to_system_prompt(self, make_client):
        provider = FakeProvider(replies=['{"name": "x"}'])
        await make_client(provider).generate_json(Prompt(system="sys", user="u"), Item)
        assert provider.calls[0]["system"].startswith("sys")
        assert "OUTPUT FORMAT" in provider.calls[0]["system"]

    async def test_truncated_json_is_repaired(self, make_client, caplog):
        client = make_client(FakeProvider(replies=['{"name": "x", "tags": ["a", "b']))
        result = await client.generate_json(Prompt(system="s", user="u"), Item)
        assert result.repaired
        assert result.value.tags == ["a", "b"]
        assert "Repaired truncated JSON" in caplog.text

    async def test_schema_mismatch_raises(self, make_client):
        client = make_client(FakeProvider(replies=['{"tags": []}']))
        with pytest.raises(LLMOutputError) as exc_info:
            await client.generate_json(Prompt(system="s", user="u"), Item)
        assert exc_info.value.usage.output_tokens == 50

    async def test_garbage_raises(self, make_client):
        client = make_client(FakeProvider(replies=["Sorry, I can't help with that."]))
        with pytest.raises(LLMOutputError):
            await client.generate_json(Prompt(system="s", user="u"), Item)

    async def test_empty_text_raises(self, make_client):
        client = make_client(FakeProvider(replies=["   "]))
        with pytest.raises(LLMOutputError):
            await client.generate_text(Prompt(system="s", user="u"))

    async def test_prompt_with_email_is_never_sent(self, make_client):
        provider = FakeProvider(replies=["ok"])
        with pytest.raises(PromptPIIError):
            await make_client(provider).generate_text(Prompt(system="s", user="ping bob@acme.com"))
        assert provider.calls == []

    async def test_cost_fn_used_when_provider_reports_none(self):
        from providers.base import LLMResponse
        from providers.client import LLMClient

        class NoCost(FakeProvider):
            async def complete(self, *args, **kwargs):
                return LLMResponse(content="hi", input_tokens=1000, output_tokens=500,
                                   model="m", provider="fake")

        client = LLMClient(NoCost(), cost_fn=lambda i, o: i * 0.001 + o * 0.002)
        result = await client.generate_text(Prompt(system="s", user="u"))
        assert result.usage.cost_usd == pytest.approx(2.0)
