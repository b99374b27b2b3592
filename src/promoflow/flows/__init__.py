"""AI reward-selection flows."""

from typing import Dict, Optional

from promoflow.llm.manager import LLMClientManager
from promoflow.repository import PromoRepository

from .base import RewardFlow
from .birthday_reward import BirthdayRewardFlow
from .social_media_reward import SocialMediaRewardFlow

__all__ = ["RewardFlow", "BirthdayRewardFlow", "SocialMediaRewardFlow", "build_flows"]


def build_flows(
    llm: LLMClientManager,
    repository: PromoRepository,
    provider: Optional[str] = None,
) -> Dict[str, RewardFlow]:
    """Flows by the name the HTTP API addresses them with."""
    flows = [
        BirthdayRewardFlow(llm, provider),
        SocialMediaRewardFlow(llm, repository, provider),
    ]
    return {flow.name: flow for flow in flows}
