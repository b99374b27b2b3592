"""Shared plumbing for AI reward-selection flows.

A flow validates its input, renders a prompt, asks the model for a JSON
object and validates the answer against the output model. There is no
retry and no fallback: an unusable answer fails the flow.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from promoflow.errors import ExternalServiceFailure
from promoflow.llm.manager import LLMClientManager

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def response_schema(model: Type[BaseModel]) -> Dict[str, Any]:
    """Provider-neutral JSON schema for a model whose fields are all strings."""
    return {
        "type": "OBJECT",
        "properties": {name: {"type": "STRING"} for name in model.model_fields},
        "required": [name for name, f in model.model_fields.items() if f.is_required()],
    }


def parse_model_output(text: Optional[str], model: Type[BaseModel]) -> BaseModel:
    """Parse the model's reply into ``model`` or raise ExternalServiceFailure."""
    if not text:
        raise ExternalServiceFailure()
    cleaned = _FENCE.sub("", text.strip())
    try:
        return model.model_validate(json.loads(cleaned))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Unusable model output: {e}")
        raise ExternalServiceFailure() from e


class RewardFlow(ABC):
    """One named prompt flow with typed input and output."""
    name: str
    input_model: Type[BaseModel]
    output_model: Type[BaseModel]

    def __init__(self, llm: LLMClientManager, provider: Optional[str] = None):
        self.llm = llm
        self.provider = provider

    @abstractmethod
    async def build_prompt(self, flow_input: BaseModel) -> str:
        pass

    async def run(self, raw_input: Dict[str, Any]) -> BaseModel:
        """Validate input, call the model, validate output.

        Invalid input raises pydantic's ValidationError; any provider
        failure or unusable answer raises ExternalServiceFailure.
        """
        flow_input = self.input_model.model_validate(raw_input)
        prompt = await self.build_prompt(flow_input)

        try:
            response = await self.llm.generate(
                prompt=prompt,
                provider=self.provider,
                response_schema=response_schema(self.output_model),
            )
        except Exception as e:
            logger.error(f"❌ {self.name} generation failed: {e}")
            raise ExternalServiceFailure() from e

        output = parse_model_output(response.text, self.output_model)
        logger.info(f"✅ {self.name} completed with {response.provider}/{response.model}")
        return output
