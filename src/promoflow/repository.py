"""Typed access to the campaigns, customers and inventory collections."""

import logging
import uuid
from typing import Any, Dict, List, Optional

from promoflow.errors import (
    CampaignNotFound,
    CustomerNotFound,
    EmailAlreadyRegistered,
    InvalidCampaignDates,
    InventoryItemNotFound,
)
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
from promoflow.store.base import DocumentStore

logger = logging.getLogger(__name__)

# Maintained only by the redemption transaction
PROTECTED_CAMPAIGN_FIELDS = {"redemptions"}


def new_customer_id() -> str:
    return f"{CUSTOMER_ID_PREFIX}{uuid.uuid4().hex[:16]}"


def _check_date_range(campaign: Campaign) -> None:
    if campaign.end_date < campaign.start_date:
        raise InvalidCampaignDates()


class PromoRepository:
    """Get/list/add/update/delete over the PromoFlow collections.

    The store handle is injected so tests can pass an in-memory store.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    # Campaigns

    def get_campaigns(self) -> List[Campaign]:
        return [Campaign.from_document(doc_id, data) for doc_id, data in self.store.list(CAMPAIGNS)]

    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        data = self.store.get(CAMPAIGNS, campaign_id)
        return Campaign.from_document(campaign_id, data) if data is not None else None

    def add_campaign(self, campaign_data: Dict[str, Any]) -> str:
        """Create a campaign. The redemption counter always starts at zero."""
        data = dict(campaign_data)
        data["redemptions"] = 0
        # Round-trip through the model to validate status and dates
        campaign = Campaign.from_document("new", data)
        _check_date_range(campaign)
        doc = campaign.to_document()
        campaign_id = self.store.add(CAMPAIGNS, doc)
        logger.info(f"Campaign created: {campaign_id} - {doc['name']}")
        return campaign_id

    def update_campaign(self, campaign_id: str, campaign_data: Dict[str, Any]) -> None:
        current = self.store.get(CAMPAIGNS, campaign_id)
        if current is None:
            raise CampaignNotFound()
        changes = {k: v for k, v in campaign_data.items() if k not in PROTECTED_CAMPAIGN_FIELDS}
        if len(changes) != len(campaign_data):
            logger.warning(f"Ignoring protected fields in update of campaign {campaign_id}")
        _check_date_range(Campaign.from_document(campaign_id, {**current, **changes}))
        self.store.update(CAMPAIGNS, campaign_id, changes)

    def delete_campaign(self, campaign_id: str) -> None:
        self.store.delete(CAMPAIGNS, campaign_id)
        logger.info(f"Campaign deleted: {campaign_id}")

    # Customers

    def get_customers(self) -> List[Customer]:
        return [Customer.from_document(doc_id, data) for doc_id, data in self.store.list(CUSTOMERS)]

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        data = self.store.get(CUSTOMERS, customer_id)
        return Customer.from_document(customer_id, data) if data is not None else None

    def find_customer_by_email(self, email: str) -> Optional[Customer]:
        matches = self.store.list(CUSTOMERS, filters=[("email", "==", email)], limit=1)
        if not matches:
            return None
        doc_id, data = matches[0]
        return Customer.from_document(doc_id, data)

    def add_customer(self, customer_data: Dict[str, Any]) -> str:
        customer_id = new_customer_id()
        self._check_email_free(customer_data.get("email"), customer_id)
        doc = Customer.from_document(customer_id, customer_data).to_document()
        self.store.set(CUSTOMERS, customer_id, doc)
        logger.info(f"Customer created: {customer_id}")
        return customer_id

    def update_customer(self, customer_id: str, customer_data: Dict[str, Any]) -> None:
        if self.store.get(CUSTOMERS, customer_id) is None:
            raise CustomerNotFound()
        changes = {k: v for k, v in customer_data.items() if k != "redemptions"}
        if "email" in changes:
            self._check_email_free(changes["email"], customer_id)
        self.store.update(CUSTOMERS, customer_id, changes)

    def _check_email_free(self, email: Optional[str], customer_id: str) -> None:
        """Email is the opt-in lookup key, so it may belong to one customer only."""
        if not email:
            return
        owner = self.find_customer_by_email(email)
        if owner is not None and owner.id != customer_id:
            raise EmailAlreadyRegistered()

    def get_redemptions(self, customer_id: str) -> List[RedemptionRecord]:
        docs = self.store.list(redemptions_collection(customer_id))
        return [RedemptionRecord.from_document(doc_id, data) for doc_id, data in docs]

    # Inventory

    def get_inventory(self) -> List[InventoryItem]:
        return [InventoryItem.from_document(doc_id, data) for doc_id, data in self.store.list(INVENTORY)]

    def get_inventory_item(self, item_id: str) -> Optional[InventoryItem]:
        data = self.store.get(INVENTORY, item_id)
        return InventoryItem.from_document(item_id, data) if data is not None else None

    def add_inventory_item(self, item_data: Dict[str, Any]) -> str:
        doc = InventoryItem.from_document("new", item_data).to_document()
        item_id = self.store.add(INVENTORY, doc)
        logger.info(f"Inventory item created: {item_id} - {doc['name']}")
        return item_id

    def update_inventory_item(self, item_id: str, item_data: Dict[str, Any]) -> None:
        current = self.store.get(INVENTORY, item_id)
        if current is None:
            raise InventoryItemNotFound()
        # Normalise stock ("unlimited", "25") to its stored form
        doc = InventoryItem.from_document(item_id, {**current, **item_data}).to_document()
        changes = {k: doc[k] for k in item_data if k in doc}
        self.store.update(INVENTORY, item_id, changes)

    def delete_inventory_item(self, item_id: str) -> None:
        self.store.delete(INVENTORY, item_id)
        logger.info(f"Inventory item deleted: {item_id}")
