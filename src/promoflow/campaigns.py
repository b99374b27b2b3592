"""Active-campaign resolution."""

import logging
from datetime import date
from typing import Iterable, List, Optional

from promoflow.errors import NoActiveCampaign
from promoflow.models import CAMPAIGNS, Campaign, CampaignStatus
from promoflow.store.base import DocumentStore

logger = logging.getLogger(__name__)


def active_campaigns(campaigns: Iterable[Campaign], today: date) -> List[Campaign]:
    """Campaigns eligible for redemption on ``today``, in resolution order.

    Ordered by earliest start date, then lowest id, so the pick is the
    same no matter what order the store returns documents in.
    """
    eligible = [c for c in campaigns if c.is_active_on(today)]
    return sorted(eligible, key=lambda c: (c.start_date, c.id))


def select_active_campaign(campaigns: Iterable[Campaign], today: date) -> Optional[Campaign]:
    eligible = active_campaigns(campaigns, today)
    if len(eligible) > 1:
        logger.warning(
            f"{len(eligible)} campaigns active on {today.isoformat()}, "
            f"using {eligible[0].id} ({eligible[0].name})"
        )
    return eligible[0] if eligible else None


def get_active_campaign(store: DocumentStore, today: date) -> Optional[Campaign]:
    """Find the campaign eligible for redemption today, or None.

    Status and start date are filtered by the store; the end date is
    checked in memory.
    """
    docs = store.list(
        CAMPAIGNS,
        filters=[
            ("status", "==", CampaignStatus.ACTIVE.value),
            ("startDate", "<=", today.isoformat()),
        ],
    )
    return select_active_campaign(
        (Campaign.from_document(doc_id, data) for doc_id, data in docs),
        today,
    )


def require_active_campaign(store: DocumentStore, today: date) -> Campaign:
    campaign = get_active_campaign(store, today)
    if campaign is None:
        raise NoActiveCampaign()
    return campaign
