"""LLM provider clients."""

from .base_client import BaseLLMClient, LLMProviderError, LLMResponse
from .manager import LLMClientManager

__all__ = ["BaseLLMClient", "LLMProviderError", "LLMResponse", "LLMClientManager"]
