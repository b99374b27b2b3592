"""Reward for a customer who shared a campaign on social media."""

import json
import logging
from typing import Optional

from pydantic import BaseModel

from promoflow.errors import CustomerNotFound
from promoflow.llm.manager import LLMClientManager
from promoflow.models import CampaignStatus
from promoflow.repository import PromoRepository

from .base import RewardFlow

logger = logging.getLogger(__name__)


class SocialMediaRewardInput(BaseModel):
    customerId: str
    platform: str


class SocialMediaRewardOutput(BaseModel):
    reward: str
    reasoning: str


PROMPT_TEMPLATE = """Generate a personalized reward for a customer who shared a campaign on social media.

INPUT:
- customerId: {customer_id}
- platform: {platform}

CONTEXT:
- Customer data: {customer}
- Active campaigns: {campaigns}

RULES:
- Base reward is a 10% discount.
- If the customer has a total spend over $500, upgrade the reward to 15%.
- If the customer is sharing on 'twitter' or 'instagram', give an additional $5 voucher.
- Provide a brief, friendly reasoning for the final reward, mentioning the customer by name.

OUTPUT in JSON format:
{{
  "reward": "The final reward string (e.g., '15% discount + $5 voucher').",
  "reasoning": "Your friendly, personalized reasoning."
}}"""


class SocialMediaRewardFlow(RewardFlow):
    name = "socialMediaRewardFlow"
    input_model = SocialMediaRewardInput
    output_model = SocialMediaRewardOutput

    def __init__(
        self,
        llm: LLMClientManager,
        repository: PromoRepository,
        provider: Optional[str] = None,
    ):
        super().__init__(llm, provider)
        self.repository = repository

    async def build_prompt(self, flow_input: SocialMediaRewardInput) -> str:
        customer = self.repository.get_customer(flow_input.customerId)
        if customer is None:
            raise CustomerNotFound()

        campaigns = [
            c.to_document() for c in self.repository.get_campaigns()
            if c.status == CampaignStatus.ACTIVE
        ]
        logger.info(f"Social reward for {customer.id} on {flow_input.platform}, {len(campaigns)} active campaign(s)")

        return PROMPT_TEMPLATE.format(
            customer_id=flow_input.customerId,
            platform=flow_input.platform,
            customer=json.dumps(customer.to_document()),
            campaigns=json.dumps(campaigns),
        )
