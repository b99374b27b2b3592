"""Routes generation requests to a configured provider."""

import logging
from typing import Any, Dict, List, Optional, Tuple, Type

from .base_client import BaseLLMClient, LLMResponse
from .gemini_client import GeminiClient
from .openai_client import OpenAIClient

logger = logging.getLogger(__name__)

# provider name -> (client class, Settings attribute holding its key)
PROVIDERS: Dict[str, Tuple[Type[BaseLLMClient], str]] = {
    "gemini": (GeminiClient, "gemini_api_key"),
    "openai": (OpenAIClient, "openai_api_key"),
}


class LLMClientManager:
    """Holds one client per provider that has an API key.

    ``clients`` replaces the settings-driven setup, which is how tests
    inject fakes.
    """

    def __init__(self, settings=None, clients: Optional[Dict[str, BaseLLMClient]] = None):
        self.default_provider = settings.ai_provider if settings else None
        self.clients: Dict[str, BaseLLMClient] = dict(clients or {})
        if clients is None and settings is not None:
            self._initialize_clients(settings)

    def _initialize_clients(self, settings):
        for name, (client_cls, key_attr) in PROVIDERS.items():
            api_key = getattr(settings, key_attr, None)
            if not api_key:
                continue
            self.clients[name] = client_cls(api_key=api_key)
            logger.info(f"{name} client initialized")
        if not self.clients:
            logger.warning("No LLM provider keys set, AI flows are unavailable")

    def get_client(self, provider: Optional[str] = None) -> BaseLLMClient:
        """Client for ``provider``, else the default, else the first configured."""
        provider = provider or self.default_provider
        if provider:
            if provider not in self.clients:
                raise ValueError(f"Provider '{provider}' not available or not configured")
            return self.clients[provider]

        if not self.clients:
            raise ValueError("No LLM providers configured")
        return next(iter(self.clients.values()))

    async def generate(
        self,
        prompt: str,
        provider: Optional[str] = None,
        max_tokens: int = 1000,
        temperature: Optional[float] = None,
        system_prompt: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        client = self.get_client(provider)
        return await client.generate(
            prompt=prompt,
            max_tokens=max_tokens,
            temperature=temperature,
            system_prompt=system_prompt,
            response_schema=response_schema,
        )

    async def validate_all(self) -> Dict[str, dict]:
        results = {}
        for name, client in self.clients.items():
            try:
                healthy = await client.validate_connection()
                results[name] = {"status": "healthy" if healthy else "unhealthy", "model": client.model}
            except Exception as e:
                results[name] = {"status": "error", "error": str(e)}
        return results

    def list_providers(self) -> List[str]:
        return list(self.clients.keys())
