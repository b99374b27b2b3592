"""Reward redemption workflow.

Scanning a customer's QR code grants the reward of the campaign that is
active today. The record, the campaign counter and the customer's
redemption map are written in one transaction, and the stock check runs
inside that same transaction so two concurrent scans cannot both take
the last unit.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

from promoflow.campaigns import require_active_campaign
from promoflow.config import REDEMPTION_POLICY_ONCE, REDEMPTION_POLICIES
from promoflow.errors import (
    AlreadyRedeemed,
    CampaignNotFound,
    CustomerNotFound,
    InvalidCustomerId,
    OutOfStock,
    TransactionFailure,
)
from promoflow.inventory import calculate_availability
from promoflow.models import (
    CAMPAIGNS,
    CUSTOMERS,
    CUSTOMER_ID_PREFIX,
    INVENTORY,
    Campaign,
    Customer,
    InventoryItem,
    RedemptionRecord,
    redemptions_collection,
)
from promoflow.repository import PromoRepository
from promoflow.store.base import SERVER_TIMESTAMP, DocumentStore, StoreError, Transaction

logger = logging.getLogger(__name__)


def _format_redeemed_on(value) -> Optional[str]:
    if not value:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return value.date().isoformat()


class RedemptionTransactor:
    """Atomically records a redemption and increments the campaign counter."""

    def __init__(self, store: DocumentStore, policy: str = REDEMPTION_POLICY_ONCE):
        if policy not in REDEMPTION_POLICIES:
            raise ValueError(f"Unknown redemption policy '{policy}'")
        self.store = store
        self.policy = policy

    def redeem(self, customer_id: str, campaign_id: str) -> RedemptionRecord:
        """Grant the campaign's reward to the customer.

        Raises CustomerNotFound, CampaignNotFound, OutOfStock or
        AlreadyRedeemed without writing anything, and TransactionFailure
        when the store rejects the commit or the campaign switched to a
        different inventory item after the snapshot read.
        """
        # Unlocked read to learn the inventory item, so the item row is
        # always locked before any campaign row.
        snapshot = self.store.get(CAMPAIGNS, campaign_id)
        if snapshot is None:
            raise CampaignNotFound()
        inventory_id = snapshot.get("inventoryId")

        try:
            with self.store.transaction() as tx:
                if inventory_id:
                    self._check_stock(tx, inventory_id, campaign_id)

                campaign_doc = tx.get(CAMPAIGNS, campaign_id)
                if campaign_doc is None:
                    raise CampaignNotFound()
                # The stock check above only covers the snapshot's item
                if campaign_doc.get("inventoryId") != inventory_id:
                    logger.warning(
                        f"Campaign {campaign_id} moved from item {inventory_id} to "
                        f"{campaign_doc.get('inventoryId')} during redemption"
                    )
                    raise TransactionFailure()
                campaign = Campaign.from_document(campaign_id, campaign_doc)

                if tx.get(CUSTOMERS, customer_id) is None:
                    raise CustomerNotFound()

                if self.policy == REDEMPTION_POLICY_ONCE:
                    self._check_not_redeemed(tx, customer_id, campaign_id)

                record_id = tx.new_id(redemptions_collection(customer_id))
                tx.set(redemptions_collection(customer_id), record_id, {
                    "campaignId": campaign.id,
                    "campaignName": campaign.name,
                    "rewardValue": campaign.reward_value,
                    "redeemedAt": SERVER_TIMESTAMP,
                })
                tx.update(CAMPAIGNS, campaign.id, {"redemptions": campaign.redemptions + 1})
                tx.update(CUSTOMERS, customer_id, {f"redemptions.{record_id}": campaign.id})
        except StoreError as e:
            logger.error(f"❌ Redemption transaction failed for {customer_id} / {campaign_id}: {e}")
            raise TransactionFailure() from e

        logger.info(f"✅ Redemption {record_id} recorded: {customer_id} redeemed {campaign.name}")
        data = self.store.get(redemptions_collection(customer_id), record_id)
        return RedemptionRecord.from_document(record_id, data)

    def _check_stock(self, tx: Transaction, inventory_id: str, campaign_id: str) -> None:
        item_doc = tx.get(INVENTORY, inventory_id)
        if item_doc is None:
            logger.warning(f"Campaign {campaign_id} references missing inventory item {inventory_id}")
            return
        item = InventoryItem.from_document(inventory_id, item_doc)
        if item.is_unlimited:
            return
        campaigns = [
            Campaign.from_document(doc_id, data)
            for doc_id, data in tx.list(CAMPAIGNS, filters=[("inventoryId", "==", inventory_id)])
        ]
        availability = calculate_availability(item, campaigns)
        if not availability.in_stock:
            name = next((c.name for c in campaigns if c.id == campaign_id), None)
            logger.info(f"Item {inventory_id} out of stock ({availability.redeemed} redeemed)")
            raise OutOfStock(name)

    def _check_not_redeemed(self, tx: Transaction, customer_id: str, campaign_id: str) -> None:
        existing = tx.list(
            redemptions_collection(customer_id),
            filters=[("campaignId", "==", campaign_id)],
        )
        if existing:
            _, data = existing[0]
            raise AlreadyRedeemed(_format_redeemed_on(data.get("redeemedAt")))


@dataclass
class RedemptionResult:
    """What the redeem screen shows after a successful scan."""
    customer_name: str
    campaign_name: str
    reward_value: str
    record: RedemptionRecord
    customer: Customer

    def to_dict(self) -> dict:
        return {
            "customerName": self.customer_name,
            "campaignName": self.campaign_name,
            "rewardValue": self.reward_value,
            "redemptionId": self.record.id,
            "redeemedAt": self.record.redeemed_at.isoformat() if self.record.redeemed_at else None,
        }


class RedemptionService:
    """Scan-to-reward workflow: validate, resolve the campaign, commit."""

    def __init__(
        self,
        repository: PromoRepository,
        policy: str = REDEMPTION_POLICY_ONCE,
        today: Callable[[], date] = date.today,
    ):
        self.repository = repository
        self.transactor = RedemptionTransactor(repository.store, policy)
        self.today = today

    def redeem(self, scanned_customer_id: str) -> RedemptionResult:
        if not scanned_customer_id or not scanned_customer_id.startswith(CUSTOMER_ID_PREFIX):
            raise InvalidCustomerId()

        customer = self.repository.get_customer(scanned_customer_id)
        if customer is None:
            raise CustomerNotFound()

        campaign = require_active_campaign(self.repository.store, self.today())
        record = self.transactor.redeem(customer.id, campaign.id)

        return RedemptionResult(
            customer_name=customer.name,
            campaign_name=record.campaign_name,
            reward_value=record.reward_value,
            record=record,
            customer=customer,
        )
