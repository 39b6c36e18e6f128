"""LLM provider implementations for the reflection narrative."""

from .base import ReflectionProvider, classify_llm_error
from .factory import available_providers, create_provider
from .gemini import GeminiProvider
from .openai_compatible import OpenAICompatibleProvider

__all__ = [
    "ReflectionProvider",
    "GeminiProvider",
    "OpenAICompatibleProvider",
    "classify_llm_error",
    "create_provider",
    "available_providers",
]
