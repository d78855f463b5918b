"""Factory for creating LLM providers."""

from typing import Dict, Optional, Type

from .base import LLMProvider
from .anthropic_provider import AnthropicProvider
from .openai_provider import OpenAIProvider, DeepseekProvider
from .gemini_provider import GeminiProvider
from .litellm_provider import LiteLLMProvider, _to_litellm_model


# Registry of available providers
PROVIDERS: Dict[str, Type[LLMProvider]] = {
    "anthropic": AnthropicProvider,
    "claude": AnthropicProvider,
    "openai": OpenAIProvider,
    "gpt": OpenAIProvider,
    "gemini": GeminiProvider,
    "google": GeminiProvider,
    "deepseek": DeepseekProvider,
}

ALIASES = ("claude", "gpt", "google")

# Model prefix to provider mapping for auto-detection
MODEL_PROVIDERS: Dict[str, str] = {
    "claude": "anthropic",
    "sonnet": "anthropic",
    "haiku": "anthropic",
    "gpt": "openai",
    "o1": "openai",
    "gemini": "gemini",
    "deepseek": "deepseek",
}


def get_provider(
    provider_name: Optional[str] = None,
    model: Optional[str] = None,
) -> LLMProvider:
    """Get an LLM provider instance.

    Args:
        provider_name: Explicit provider name (anthropic, openai, gemini, deepseek,
            or litellm to route through LiteLLM)
        model: Model name - if provided without provider, will auto-detect provider

    Returns:
        LLMProvider instance

    Examples:
        get_provider("deepseek")            # rate-limited Deepseek provider
        get_provider(model="gpt-4o")         # OpenAI provider
        get_provider("litellm", "gemini/gemini-2.0-flash")
        get_provider()                       # settings.default_provider
    """
    if provider_name:
        provider_key = provider_name.lower()
        if provider_key == "litellm":
            return LiteLLMProvider(_to_litellm_model(None, model))
        if provider_key not in PROVIDERS:
            raise ValueError(
                f"Unknown provider: {provider_name}. "
                f"Available: {[p for p in PROVIDERS if p not in ALIASES] + ['litellm']}"
            )
        return PROVIDERS[provider_key]()

    if model:
        model_lower = model.lower()
        for prefix, provider in MODEL_PROVIDERS.items():
            if model_lower.startswith(prefix):
                return PROVIDERS[provider]()

    from config import settings
    return PROVIDERS.get(settings.default_provider.lower(), OpenAIProvider)()


def list_providers() -> Dict[str, bool]:
    """List all providers and their availability.

    Returns:
        Dict mapping provider name to availability status
    """
    result = {}
    for name, provider_class in PROVIDERS.items():
        if name in ALIASES:
            continue
        try:
            provider = provider_class()
            result[name] = provider.is_available()
        except Exception:
            result[name] = False
    return result
