"""LLM client used by the generators.

Wraps one LLMProvider with the two calls the generators need:
generate_text() for markdown documents and generate_json() for structured
documents validated against a pydantic contract. Every outbound prompt is
checked for leftover personal data before it is sent.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from contracts.document_contracts import UsageMetrics
from privacy.sanitizer import assert_prompt_clean

from .base import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass
class Prompt:
    """System/user prompt pair with generation parameters."""
    system: str
    user: str
    max_tokens: int = 4000
    temperature: Optional[float] = None


@dataclass
class TextResult:
    content: str
    usage: UsageMetrics
    provider: str
    model: str
    duration_ms: int = 0
    truncated: bool = False


@dataclass
class JsonResult(Generic[T]):
    value: T
    usage: UsageMetrics
    provider: str
    model: str
    duration_ms: int = 0
    repaired: bool = False


class LLMOutputError(ValueError):
    """The model answered, but the answer could not be parsed or validated."""

    def __init__(self, message: str, raw: str = "", usage: Optional[UsageMetrics] = None):
        super().__init__(message)
        self.raw = raw
        self.usage = usage or UsageMetrics()


def strip_markdown_fences(text: str) -> str:
    """Return the JSON payload of a response that may be wrapped in ``` fences."""
    text = text.strip()
    if "```json" in text:
        start = text.find("```json") + 7
        end = text.find("```", start)
        return text[start:end if end != -1 else None].strip()
    if text.startswith("```"):
        start = text.find("\n") + 1 if "\n" in text else 3
        end = text.find("```", start)
        return text[start:end if end != -1 else None].strip()
    return text


def repair_truncated_json(text: str) -> Optional[str]:
    """Close the strings, arrays and objects left open by a truncated response.

    Returns None when the text does not look like truncated JSON.
    """
    start = text.find("{")
    if start == -1:
        return None
    text = text[start:]

    stack = []
    in_string = False
    escaped = False
    for ch in text:
        if escaped:
            escaped = False
            continue
        if ch == "\\" and in_string:
            escaped = True
        elif ch == '"':
            in_string = not in_string
        elif not in_string and ch in "{[":
            stack.append("}" if ch == "{" else "]")
        elif not in_string and ch in "}]":
            if not stack:
                return None
            stack.pop()

    if not stack and not in_string:
        return None

    repaired = text + ('"' if in_string else "")
    repaired = repaired.rstrip().rstrip(",")
    # A dangling key or colon cannot be completed; drop back to the last full value.
    if repaired.endswith(":"):
        repaired = repaired[: repaired.rfind(",")] if "," in repaired else repaired[:-1]
    return repaired + "".join(reversed(stack))


class LLMClient:
    """Async client bound to one provider and model."""

    def __init__(
        self,
        provider: LLMProvider,
        model: Optional[str] = None,
        cost_fn: Optional[Callable[[int, int], float]] = None,
        prompt_guard: Optional[Callable[[str], None]] = assert_prompt_clean,
    ):
        """Initialize the client.

        Args:
            provider: Provider that performs the calls
            model: Model override; None uses the provider's default
            cost_fn: (input_tokens, output_tokens) -> USD, used when the provider
                reports no cost. Defaults to settings.calculate_cost.
            prompt_guard: Called with every outbound prompt; raises to block it
        """
        if cost_fn is None:
            from config import settings
            cost_fn = settings.calculate_cost
        self.provider = provider
        self.model = model or provider.default_model
        self._cost_fn = cost_fn
        self._prompt_guard = prompt_guard

    @property
    def provider_name(self) -> str:
        return self.provider.name

    @property
    def rate_limited(self) -> bool:
        return self.provider.rate_limited

    async def _complete(self, prompt: Prompt) -> LLMResponse:
        if self._prompt_guard is not None:
            self._prompt_guard(prompt.system)
            self._prompt_guard(prompt.user)
        return await self.provider.complete(
            system_prompt=prompt.system,
            user_message=prompt.user,
            model=self.model,
            max_tokens=prompt.max_tokens,
            temperature=prompt.temperature,
        )

    def _usage(self, response: LLMResponse) -> UsageMetrics:
        cost = response.cost
        if cost is None:
            cost = self._cost_fn(response.input_tokens, response.output_tokens)
        return UsageMetrics(
            input_tokens=response.input_tokens or 0,
            output_tokens=response.output_tokens or 0,
            cost_usd=cost,
        )

    async def generate_text(self, prompt: Prompt) -> TextResult:
        """Generate free text (markdown documents)."""
        started = time.monotonic()
        response = await self._complete(prompt)
        if not response.content or not response.content.strip():
            raise LLMOutputError("Empty response", usage=self._usage(response))
        if response.truncated:
            logger.warning("%s response hit max_tokens=%d; text may be cut short",
                           response.provider, prompt.max_tokens)
        return TextResult(
            content=response.content,
            usage=self._usage(response),
            provider=response.provider,
            model=response.model,
            duration_ms=int((time.monotonic() - started) * 1000),
            truncated=response.truncated,
        )

    async def generate_json(self, prompt: Prompt, schema: Type[T]) -> JsonResult[T]:
        """Generate a JSON object and validate it against schema.

        Raises:
            LLMOutputError: If the response is not valid JSON for schema
        """
        started = time.monotonic()
        json_prompt = Prompt(
            system=prompt.system + _schema_instructions(schema),
            user=prompt.user,
            max_tokens=prompt.max_tokens,
            temperature=prompt.temperature,
        )
        response = await self._complete(json_prompt)
        usage = self._usage(response)
        text = strip_markdown_fences(response.content or "")

        repaired = False
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            candidate = repair_truncated_json(text)
            if candidate is None:
                raise LLMOutputError(f"Response is not JSON: {e}", raw=text, usage=usage) from e
            try:
                data = json.loads(candidate)
            except json.JSONDecodeError:
                raise LLMOutputError(f"Response is not JSON: {e}", raw=text, usage=usage) from e
            repaired = True
            logger.warning(
                "Repaired truncated JSON from %s for %s (%d chars); content may be incomplete",
                response.provider, schema.__name__, len(text),
            )

        try:
            value = schema.model_validate(data)
        except ValidationError as e:
            raise LLMOutputError(
                f"Response does not match {schema.__name__}: {e.error_count()} error(s)",
                raw=text,
                usage=usage,
            ) from e

        return JsonResult(
            value=value,
            usage=usage,
            provider=response.provider,
            model=response.model,
            duration_ms=int((time.monotonic() - started) * 1000),
            repaired=repaired,
        )


def _schema_instructions(schema: Type[BaseModel]) -> str:
    return (
        "\n\n# OUTPUT FORMAT\n"
        "You MUST respond with valid JSON matching this schema. "
        "No markdown formatting, no explanations, just the JSON object. "
        "List fields must be JSON arrays, never single strings.\n\n"
        f"```json\n{json.dumps(schema.model_json_schema(), indent=2)}\n```"
    )
