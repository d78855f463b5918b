"""Base LLM provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class LLMResponse:
    """Standardized response from any LLM provider.

    cost is None when the provider does not report it.
    """
    content: str
    input_tokens: int
    output_tokens: int
    model: str
    provider: str
    cost: Optional[float] = None
    truncated: bool = False


class LLMProvider(ABC):
    """Abstract base class for async LLM providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (anthropic, openai, gemini, deepseek, litellm)."""
        pass

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Default model for this provider."""
        pass

    @property
    def rate_limited(self) -> bool:
        """True if documents for this provider must be generated one at a time."""
        return False

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        model: Optional[str] = None,
        max_tokens: int = 4096,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        """Generate a completion.

        Args:
            system_prompt: System/instruction prompt
            user_message: User message/query
            model: Model to use (defaults to provider's default)
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature (None uses the provider default)

        Returns:
            LLMResponse with content and token counts
        """
        pass

    def is_available(self) -> bool:
        """Check if this provider is available (API key set, etc.)."""
        return True
