"""Birthday reward selection flow."""

import json
from typing import List, Optional

from pydantic import BaseModel, Field

from .base import RewardFlow


class BirthdayCustomerData(BaseModel):
    name: str
    birthdate: str = Field(description="Birthdate of the customer (YYYY-MM-DD)")
    preferences: str = Field(description="Product categories, past purchases")


class RewardCandidate(BaseModel):
    rewardId: str
    rewardDescription: str
    quantityAvailable: int


class BirthdayRewardInput(BaseModel):
    customerId: str
    customerData: BirthdayCustomerData
    availableRewards: List[RewardCandidate]
    campaignHistory: Optional[str] = None


class BirthdayRewardOutput(BaseModel):
    rewardId: str
    rewardDescription: str
    reasoning: str


PROMPT_TEMPLATE = """You are an expert marketing assistant specializing in creating personalized birthday rewards for customers.

Your task is to select the single best reward to offer a customer on their birthday.

Analyze the following information:
1.  **Customer Preferences**: {preferences}
2.  **Available Rewards & Inventory**: {rewards}
3.  **Past Campaign Performance**: {history}

Based on all of this data, choose the one reward that is most likely to delight the customer and be effective for the business. Consider their past purchases and stated interests. Pay attention to inventory levels; do not select a reward with zero quantity unless it is the only option. Also, consider the campaign history to avoid repeating less successful strategies.

Respond with a JSON object containing "rewardId", "rewardDescription" and "reasoning" (a brief, compelling reason for your choice)."""


class BirthdayRewardFlow(RewardFlow):
    name = "birthdayRewardFlow"
    input_model = BirthdayRewardInput
    output_model = BirthdayRewardOutput

    async def build_prompt(self, flow_input: BirthdayRewardInput) -> str:
        rewards = [r.model_dump() for r in flow_input.availableRewards]
        return PROMPT_TEMPLATE.format(
            preferences=flow_input.customerData.preferences,
            rewards=json.dumps(rewards),
            history=flow_input.campaignHistory or "No previous campaign data.",
        )
