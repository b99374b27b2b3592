"""Shared fixtures for PromoFlow tests."""

import os
import sys
from datetime import date

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from promoflow.models import CAMPAIGNS, CUSTOMERS, INVENTORY
from promoflow.repository import PromoRepository
from promoflow.store.memory_store import InMemoryDocumentStore

TODAY = date(2024, 1, 15)


def make_campaign(**overrides):
    data = {
        "name": "January Mug Giveaway",
        "status": "Active",
        "rewardType": "Inventory Item",
        "rewardValue": "Branded Mug",
        "inventoryId": "item_mug",
        "redemptions": 0,
        "startDate": "2024-01-01",
        "endDate": "2024-01-31",
    }
    data.update(overrides)
    return data


def make_customer(**overrides):
    data = {
        "name": "Ana Lopez",
        "email": "ana@example.com",
        "phone": "555-0100",
        "birthdate": "1990-04-12",
        "redemptions": {},
    }
    data.update(overrides)
    return data


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def repository(store):
    return PromoRepository(store)


@pytest.fixture
def seeded_store(store):
    """One active campaign on a 50-unit item and one registered customer."""
    store.set(INVENTORY, "item_mug", {
        "name": "Branded Mug",
        "stock": 50,
        "category": "Merch",
        "image": "https://placehold.co/64x64.png",
        "aiHint": "mug",
    })
    store.set(CAMPAIGNS, "camp_jan", make_campaign())
    store.set(CUSTOMERS, "cust_ana", make_customer())
    return store
