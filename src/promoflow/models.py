"""Domain types stored in the document store.

Documents are persisted with camelCase field names; each type converts
to and from that shape with ``to_document`` / ``from_document``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from promoflow.errors import InvalidStock

CAMPAIGNS = "campaigns"
CUSTOMERS = "customers"
INVENTORY = "inventory"

UNLIMITED = "Unlimited"
CUSTOMER_ID_PREFIX = "cust_"
DEFAULT_ITEM_IMAGE = "https://placehold.co/64x64.png"


def redemptions_collection(customer_id: str) -> str:
    """Path of the per-customer redemptions sub-collection."""
    return f"{CUSTOMERS}/{customer_id}/redemptions"


class CampaignStatus(str, Enum):
    """Lifecycle status of a campaign."""
    SCHEDULED = "Scheduled"
    ACTIVE = "Active"
    FINISHED = "Finished"


@dataclass(frozen=True)
class LimitedStock:
    """A finite number of units."""
    count: int

    def __post_init__(self):
        if self.count < 0:
            raise InvalidStock()


@dataclass(frozen=True)
class UnlimitedStock:
    """No quantity ceiling applies."""


Stock = Union[LimitedStock, UnlimitedStock]


def parse_stock(value: Any) -> Stock:
    """Parse a stored or user-entered stock value.

    Accepts a non-negative integer (or its string form) or "unlimited" in
    any case. Raises ``InvalidStock`` for anything else.
    """
    if isinstance(value, (LimitedStock, UnlimitedStock)):
        return value
    if isinstance(value, bool):
        raise InvalidStock()
    if isinstance(value, int):
        return LimitedStock(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lower() == UNLIMITED.lower():
            return UnlimitedStock()
        if text.isdigit():
            return LimitedStock(int(text))
    raise InvalidStock()


def stock_to_document(stock: Stock) -> Union[int, str]:
    if isinstance(stock, UnlimitedStock):
        return UNLIMITED
    return stock.count


def parse_date(value: Union[str, date]) -> date:
    """Parse a calendar date stored as YYYY-MM-DD."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


@dataclass
class Campaign:
    id: str
    name: str
    status: CampaignStatus
    reward_type: str
    reward_value: str
    start_date: date
    end_date: date
    redemptions: int = 0
    inventory_id: Optional[str] = None
    flyer_image: Optional[str] = None

    def is_active_on(self, today: date) -> bool:
        """True when status is Active and the inclusive date range contains today."""
        return (
            self.status == CampaignStatus.ACTIVE
            and self.start_date <= today
            and self.end_date >= today
        )

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Campaign":
        return cls(
            id=doc_id,
            name=data["name"],
            status=CampaignStatus(data["status"]),
            reward_type=data.get("rewardType", ""),
            reward_value=data.get("rewardValue", ""),
            start_date=parse_date(data["startDate"]),
            end_date=parse_date(data["endDate"]),
            redemptions=int(data.get("redemptions") or 0),
            inventory_id=data.get("inventoryId") or None,
            flyer_image=data.get("flyerImage"),
        )

    def to_document(self) -> Dict[str, Any]:
        doc = {
            "name": self.name,
            "status": self.status.value,
            "rewardType": self.reward_type,
            "rewardValue": self.reward_value,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "redemptions": self.redemptions,
        }
        if self.inventory_id:
            doc["inventoryId"] = self.inventory_id
        if self.flyer_image:
            doc["flyerImage"] = self.flyer_image
        return doc


@dataclass
class Customer:
    id: str
    name: str
    email: str
    phone: str = ""
    birthdate: str = ""
    redemptions: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Customer":
        return cls(
            id=doc_id,
            name=data.get("name", ""),
            email=data.get("email", ""),
            phone=data.get("phone", ""),
            birthdate=data.get("birthdate", ""),
            redemptions=dict(data.get("redemptions") or {}),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "birthdate": self.birthdate,
            "redemptions": dict(self.redemptions),
        }


@dataclass
class InventoryItem:
    id: str
    name: str
    stock: Stock
    category: str = ""
    image: str = DEFAULT_ITEM_IMAGE
    ai_hint: str = ""

    @property
    def is_unlimited(self) -> bool:
        return isinstance(self.stock, UnlimitedStock)

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "InventoryItem":
        return cls(
            id=doc_id,
            name=data.get("name", ""),
            stock=parse_stock(data.get("stock", 0)),
            category=data.get("category", ""),
            image=data.get("image") or DEFAULT_ITEM_IMAGE,
            ai_hint=data.get("aiHint", ""),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "stock": stock_to_document(self.stock),
            "category": self.category,
            "image": self.image,
            "aiHint": self.ai_hint,
        }


@dataclass
class RedemptionRecord:
    """Immutable snapshot of a granted reward."""
    id: str
    campaign_id: str
    campaign_name: str
    reward_value: str
    redeemed_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "RedemptionRecord":
        redeemed_at = data.get("redeemedAt")
        if isinstance(redeemed_at, str):
            redeemed_at = datetime.fromisoformat(redeemed_at)
        return cls(
            id=doc_id,
            campaign_id=data["campaignId"],
            campaign_name=data.get("campaignName", ""),
            reward_value=data.get("rewardValue", ""),
            redeemed_at=redeemed_at,
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "campaignId": self.campaign_id,
            "campaignName": self.campaign_name,
            "rewardValue": self.reward_value,
            "redeemedAt": self.redeemed_at.isoformat() if self.redeemed_at else None,
        }
