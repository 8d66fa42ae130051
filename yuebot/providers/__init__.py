"""LLM provider abstraction module."""

from yuebot.providers.base import CompletionError, LLMProvider, LLMResponse
from yuebot.providers.litellm_provider import LiteLLMProvider

__all__ = ["CompletionError", "LLMProvider", "LLMResponse", "LiteLLMProvider"]
