"""LLM Provider abstraction for multi-model support."""

from .base import LLMProvider, LLMResponse
from .client import JsonResult, LLMClient, LLMOutputError, Prompt, TextResult
from .factory import get_provider, list_providers

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "LLMClient",
    "LLMOutputError",
    "Prompt",
    "TextResult",
    "JsonResult",
    "get_provider",
    "list_providers",
]
