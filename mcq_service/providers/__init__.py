"""LLM provider integrations."""

from .base import BaseLLMProvider, ContentPart, LLMProviderError
from .google_provider import GoogleProvider

__all__ = ["BaseLLMProvider", "ContentPart", "GoogleProvider", "LLMProviderError"]
