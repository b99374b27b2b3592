"""Dashboard metrics over campaigns and customers."""

from typing import Any, Dict, Iterable

from promoflow.models import Campaign, CampaignStatus, Customer


def dashboard_summary(campaigns: Iterable[Campaign], customers: Iterable[Customer]) -> Dict[str, Any]:
    campaigns = list(campaigns)
    customers = list(customers)

    top_campaign = None
    if campaigns:
        # Later campaign wins a tie
        top = campaigns[0]
        for campaign in campaigns[1:]:
            if (campaign.redemptions or 0) >= (top.redemptions or 0):
                top = campaign
        top_campaign = {"id": top.id, "name": top.name, "redemptions": top.redemptions}

    return {
        "totalRedemptions": sum(c.redemptions or 0 for c in campaigns),
        "activeCampaigns": sum(1 for c in campaigns if c.status == CampaignStatus.ACTIVE),
        "totalCustomers": len(customers),
        "topCampaign": top_campaign,
        "chart": [{"campaign": c.name, "redemptions": c.redemptions or 0} for c in campaigns],
    }
