"""OpenAI chat completions client."""

import logging
from typing import Any, Dict, Optional

from .base_client import BaseLLMClient, LLMResponse

logger = logging.getLogger(__name__)


class OpenAIClient(BaseLLMClient):
    provider = "openai"
    base_url = "https://api.openai.com/v1"

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", temperature: float = 0.7):
        super().__init__(api_key, model, temperature)

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

    async def generate(
        self,
        prompt: str,
        max_tokens: int = 1000,
        temperature: Optional[float] = None,
        system_prompt: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature if temperature is not None else self.temperature,
        }
        # JSON mode only guarantees an object; the caller validates its shape
        if response_schema:
            payload["response_format"] = {"type": "json_object"}

        data = await self._post_json(f"{self.base_url}/chat/completions", payload)

        choice = data["choices"][0]
        usage = data.get("usage", {})
        text = choice["message"]["content"]
        logger.info(f"📥 OPENAI RESPONSE (first 200 chars): {text[:200]}")

        return LLMResponse(
            text=text,
            model=self.model,
            provider=self.provider,
            token_count=usage.get("total_tokens", 0),
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
            stop_reason=choice.get("finish_reason")
        )
