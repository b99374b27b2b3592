"""Provider-neutral interface for the reward-selection models."""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Dict, Any

import aiohttp

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 60
VALIDATE_TIMEOUT = 10


class LLMProviderError(Exception):
    """The provider answered with a non-200 status."""

    def __init__(self, provider: str, status: int, body: str):
        super().__init__(f"{provider} API error (HTTP {status}): {body}")
        self.provider = provider
        self.status = status


@dataclass
class LLMResponse:
    text: str
    model: str
    provider: str
    token_count: int
    input_tokens: int
    output_tokens: int
    stop_reason: Optional[str] = None


class BaseLLMClient(ABC):
    """One hosted model reachable over HTTP.

    Subclasses build the provider payload and read the provider reply;
    the request itself goes through ``_post_json``.
    """
    provider: str = ""
    base_url: str = ""

    def __init__(self, api_key: str, model: str, temperature: float = 0.7):
        if not api_key:
            raise ValueError(f"{self.provider} API key not provided")
        self.api_key = api_key
        self.model = model
        self.temperature = temperature

    @property
    @abstractmethod
    def headers(self) -> Dict[str, str]:
        pass

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        max_tokens: int = 1000,
        temperature: Optional[float] = None,
        system_prompt: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        """Generate text using the LLM.

        When ``response_schema`` is given the provider is asked for a JSON
        object matching it.
        """
        pass

    async def _post_json(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        logger.info(f"📤 {self.provider.upper()} REQUEST: POST {url}")
        logger.debug(f"Payload:\n{json.dumps(payload, indent=2)}")

        async with aiohttp.ClientSession() as session:
            async with session.post(
                url,
                json=payload,
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)
            ) as response:
                if response.status != 200:
                    body = await response.text()
                    logger.error(f"❌ {self.provider.upper()} ERROR (HTTP {response.status}): {body}")
                    raise LLMProviderError(self.provider, response.status, body)
                return await response.json()

    async def validate_connection(self) -> bool:
        """True when the provider's model listing answers 200."""
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    f"{self.base_url}/models",
                    headers=self.headers,
                    timeout=aiohttp.ClientTimeout(total=VALIDATE_TIMEOUT)
                ) as response:
                    return response.status == 200
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to validate {self.provider} connection: {e}")
            return False
