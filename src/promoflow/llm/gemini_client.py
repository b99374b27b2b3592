"""Google Gemini client over the generateContent REST API."""

import logging
from typing import Any, Dict, Optional

from .base_client import BaseLLMClient, LLMResponse

logger = logging.getLogger(__name__)


class GeminiClient(BaseLLMClient):
    provider = "gemini"
    base_url = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(self, api_key: str, model: str = "gemini-1.5-flash", temperature: float = 0.7):
        super().__init__(api_key, model, temperature)

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
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
        generation_config: Dict[str, Any] = {
            "maxOutputTokens": max_tokens,
            "temperature": temperature if temperature is not None else self.temperature,
        }
        if response_schema:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = response_schema

        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        data = await self._post_json(f"{self.base_url}/models/{self.model}:generateContent", payload)

        # A blocked prompt comes back without candidates
        candidates = data.get("candidates") or []
        if not candidates:
            logger.warning(f"Gemini returned no candidates: {data.get('promptFeedback')}")
            text, stop_reason = "", None
        else:
            parts = candidates[0].get("content", {}).get("parts", [])
            text = "".join(part.get("text", "") for part in parts)
            stop_reason = candidates[0].get("finishReason")
        usage = data.get("usageMetadata", {})
        logger.info(f"📥 GEMINI RESPONSE (first 200 chars): {text[:200]}")

        return LLMResponse(
            text=text,
            model=self.model,
            provider=self.provider,
            token_count=usage.get("totalTokenCount", 0),
            input_tokens=usage.get("promptTokenCount", 0),
            output_tokens=usage.get("candidatesTokenCount", 0),
            stop_reason=stop_reason
        )
