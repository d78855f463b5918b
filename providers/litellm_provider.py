"""LiteLLM-backed provider: one async implementation for every backend LiteLLM supports."""

from typing import Dict, Optional

from .base import LLMProvider, LLMResponse


# LiteLLM model strings are provider/model-name; OpenAI models need no prefix.
MODEL_ALIASES: Dict[str, Dict[Optional[str], str]] = {
    "anthropic": {
        None: "anthropic/claude-sonnet-4-20250514",
        "claude-sonnet": "anthropic/claude-sonnet-4-20250514",
        "claude-haiku": "anthropic/claude-3-5-haiku-20241022",
    },
    "openai": {
        None: "gpt-4o-mini",
        "gpt-4o": "gpt-4o",
        "gpt-4o-mini": "gpt-4o-mini",
        "gpt-4.1": "gpt-4.1",
        "gpt-4.1-mini": "gpt-4.1-mini",
    },
    "gemini": {
        None: "gemini/gemini-2.0-flash",
        "gemini-2.0-flash": "gemini/gemini-2.0-flash",
        "gemini-2.5-flash": "gemini/gemini-2.5-flash",
        "gemini-2.5-pro": "gemini/gemini-2.5-pro",
    },
    "deepseek": {
        None: "deepseek/deepseek-chat",
        "deepseek-chat": "deepseek/deepseek-chat",
        "deepseek-reasoner": "deepseek/deepseek-reasoner",
    },
}

PROVIDER_SYNONYMS = {"claude": "anthropic", "gpt": "openai", "google": "gemini"}


def _to_litellm_model(provider_name: Optional[str], model: Optional[str]) -> str:
    """Map provider + model alias to a LiteLLM model string."""
    key = PROVIDER_SYNONYMS.get((provider_name or "openai").lower(), (provider_name or "openai").lower())
    aliases = MODEL_ALIASES.get(key)
    if aliases is None:
        return model or MODEL_ALIASES["openai"][None]
    if not model:
        return aliases[None]
    if model.lower() in aliases:
        return aliases[model.lower()]
    if "/" in model or key == "openai":
        return model
    return f"{key}/{model}"


class LiteLLMProvider(LLMProvider):
    """Single provider that delegates to litellm.acompletion()."""

    def __init__(self, default_model: str, metadata: Optional[dict] = None):
        """Initialize with the LiteLLM model string to use by default.

        Args:
            default_model: LiteLLM model string (e.g. gpt-4o-mini, deepseek/deepseek-chat).
            metadata: Optional dict passed to litellm (e.g. document type) for cost logging.
        """
        self._default_model = default_model
        self._metadata = metadata or {}

    @classmethod
    def for_provider(cls, provider_name: Optional[str], model: Optional[str] = None) -> "LiteLLMProvider":
        """Build a provider for a provider name / model alias pair."""
        return cls(_to_litellm_model(provider_name, model))

    @property
    def name(self) -> str:
        return "litellm"

    @property
    def default_model(self) -> str:
        return self._default_model

    @property
    def rate_limited(self) -> bool:
        return self._default_model.startswith("deepseek/")

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        model: Optional[str] = None,
        max_tokens: int = 4096,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        import litellm

        resolved_model = model or self._default_model
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ]
        kwargs = {
            "model": resolved_model,
            "messages": messages,
            "max_tokens": max_tokens,
            "metadata": {**self._metadata},
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        response = await litellm.acompletion(**kwargs)

        choice = response.choices[0]
        content = choice.message.content or ""
        usage = getattr(response, "usage", None)
        input_tokens = getattr(usage, "prompt_tokens", 0) or 0
        output_tokens = getattr(usage, "completion_tokens", 0) or 0
        hidden = getattr(response, "_hidden_params", None) or {}
        cost = hidden.get("response_cost")
        model_id = getattr(response, "model", None) or resolved_model

        return LLMResponse(
            content=content,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=model_id,
            provider=self.name,
            cost=float(cost) if cost is not None else None,
            truncated=getattr(choice, "finish_reason", None) == "length",
        )

    def is_available(self) -> bool:
        """LiteLLM reads API keys from env; we consider it available if the model is set."""
        return bool(self._default_model)
