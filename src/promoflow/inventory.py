"""Stock and availability calculations for inventory items."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from promoflow.models import Campaign, InventoryItem, LimitedStock, UnlimitedStock

LOW_STOCK_THRESHOLD = 10
# Quantity reported to the reward-selection model for unlimited items
UNLIMITED_QUANTITY = 9999


class StockStatus(str, Enum):
    UNLIMITED = "Unlimited"
    OUT_OF_STOCK = "Out of Stock"
    LOW_STOCK = "Low Stock"
    IN_STOCK = "In Stock"


@dataclass
class Availability:
    """Remaining stock of one item. ``remaining`` is None when unbounded."""
    item_id: str
    redeemed: int
    remaining: Optional[int]

    @property
    def unlimited(self) -> bool:
        return self.remaining is None

    @property
    def in_stock(self) -> bool:
        return self.remaining is None or self.remaining > 0


def redemptions_for_item(item_id: str, campaigns: Iterable[Campaign]) -> int:
    """Sum redemption counters of every campaign referencing the item."""
    return sum(c.redemptions or 0 for c in campaigns if c.inventory_id == item_id)


def calculate_availability(item: InventoryItem, campaigns: Iterable[Campaign]) -> Availability:
    redeemed = redemptions_for_item(item.id, campaigns)
    stock = item.stock
    if isinstance(stock, UnlimitedStock):
        return Availability(item_id=item.id, redeemed=redeemed, remaining=None)
    if isinstance(stock, LimitedStock):
        return Availability(item_id=item.id, redeemed=redeemed, remaining=stock.count - redeemed)
    raise TypeError(f"Unknown stock type: {type(stock).__name__}")


def stock_status(
    item: InventoryItem,
    campaigns: Iterable[Campaign],
    low_stock_threshold: int = LOW_STOCK_THRESHOLD,
) -> StockStatus:
    availability = calculate_availability(item, campaigns)
    if availability.unlimited:
        return StockStatus.UNLIMITED
    if availability.remaining <= 0:
        return StockStatus.OUT_OF_STOCK
    if availability.remaining < low_stock_threshold:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def inventory_report(
    items: Iterable[InventoryItem],
    campaigns: Iterable[Campaign],
    low_stock_threshold: int = LOW_STOCK_THRESHOLD,
) -> List[dict]:
    """Per-item rows for the inventory overview."""
    campaigns = list(campaigns)
    rows = []
    for item in items:
        availability = calculate_availability(item, campaigns)
        rows.append({
            "id": item.id,
            "name": item.name,
            "category": item.category,
            "stock": "Unlimited" if item.is_unlimited else item.stock.count,
            "redemptions": availability.redeemed,
            "available": availability.remaining,
            "status": stock_status(item, campaigns, low_stock_threshold).value,
        })
    return rows


def available_rewards(items: Iterable[InventoryItem], campaigns: Iterable[Campaign]) -> List[dict]:
    """Reward candidates for the birthday reward flow."""
    campaigns = list(campaigns)
    rewards = []
    for item in items:
        availability = calculate_availability(item, campaigns)
        quantity = UNLIMITED_QUANTITY if availability.unlimited else max(availability.remaining, 0)
        rewards.append({
            "rewardId": item.id,
            "rewardDescription": item.name,
            "quantityAvailable": quantity,
        })
    return rewards
