"""Tests for the redemption workflow.

Validates:
- Counter increments by exactly one per successful redemption
- Redemption record is a snapshot of the campaign at redemption time
- Failure kinds and their messages
- Stock check runs inside the transaction (no oversubscription)
- Duplicate-redemption policy
"""

import threading
from datetime import date
from unittest.mock import patch

import pytest

from conftest import TODAY, make_campaign, make_customer
from promoflow.config import REDEMPTION_POLICY_ONCE, REDEMPTION_POLICY_UNLIMITED
from promoflow.errors import (
    AlreadyRedeemed,
    CampaignNotFound,
    CustomerNotFound,
    InvalidCustomerId,
    NoActiveCampaign,
    OutOfStock,
    TransactionFailure,
)
from promoflow.models import CAMPAIGNS, CUSTOMERS, INVENTORY, redemptions_collection
from promoflow.redemption import RedemptionService, RedemptionTransactor
from promoflow.repository import PromoRepository
from promoflow.store.base import StoreError


def _service(store, policy=REDEMPTION_POLICY_ONCE, today=TODAY):
    return RedemptionService(PromoRepository(store), policy, today=lambda: today)


def test_successful_redemption(seeded_store):
    result = _service(seeded_store).redeem("cust_ana")

    assert result.customer_name == "Ana Lopez"
    assert result.campaign_name == "January Mug Giveaway"
    assert result.reward_value == "Branded Mug"
    assert result.record.redeemed_at is not None

    assert seeded_store.get(CAMPAIGNS, "camp_jan")["redemptions"] == 1

    records = seeded_store.list(redemptions_collection("cust_ana"))
    assert len(records) == 1
    record_id, data = records[0]
    assert data["campaignId"] == "camp_jan"
    assert data["campaignName"] == "January Mug Giveaway"
    assert data["rewardValue"] == "Branded Mug"

    assert seeded_store.get(CUSTOMERS, "cust_ana")["redemptions"] == {record_id: "camp_jan"}


def test_record_is_snapshot_not_live_reference(seeded_store):
    repository = PromoRepository(seeded_store)
    _service(seeded_store).redeem("cust_ana")

    repository.update_campaign("camp_jan", {"name": "Renamed", "rewardValue": "Other"})

    record = repository.get_redemptions("cust_ana")[0]
    assert record.campaign_name == "January Mug Giveaway"
    assert record.reward_value == "Branded Mug"


def test_counter_uses_value_read_in_transaction(seeded_store):
    """A stale in-memory campaign must not roll the counter back."""
    seeded_store.update(CAMPAIGNS, "camp_jan", {"redemptions": 7})
    seeded_store.set(CUSTOMERS, "cust_bo", make_customer(name="Bo", email="bo@example.com"))

    RedemptionTransactor(seeded_store).redeem("cust_bo", "camp_jan")

    assert seeded_store.get(CAMPAIGNS, "camp_jan")["redemptions"] == 8


def test_invalid_scan_rejected_before_any_read(seeded_store):
    with pytest.raises(InvalidCustomerId) as excinfo:
        _service(seeded_store).redeem("not-a-customer")

    assert excinfo.value.message == "The scanned code is not a valid customer ID."


def test_unknown_customer(seeded_store):
    with pytest.raises(CustomerNotFound) as excinfo:
        _service(seeded_store).redeem("cust_ghost")

    assert excinfo.value.message == "Customer ID not found."
    assert seeded_store.get(CAMPAIGNS, "camp_jan")["redemptions"] == 0


def test_no_active_campaign(seeded_store):
    with pytest.raises(NoActiveCampaign):
        _service(seeded_store, today=date(2024, 2, 1)).redeem("cust_ana")

    assert seeded_store.list(redemptions_collection("cust_ana")) == []


def test_unknown_campaign(seeded_store):
    with pytest.raises(CampaignNotFound):
        RedemptionTransactor(seeded_store).redeem("cust_ana", "camp_missing")


def test_out_of_stock(seeded_store):
    seeded_store.update(INVENTORY, "item_mug", {"stock": 10})
    seeded_store.set(CAMPAIGNS, "camp_dec", make_campaign(
        name="December Mugs", status="Finished",
        startDate="2023-12-01", endDate="2023-12-31", redemptions=6,
    ))
    seeded_store.update(CAMPAIGNS, "camp_jan", {"redemptions": 4})

    with pytest.raises(OutOfStock) as excinfo:
        _service(seeded_store).redeem("cust_ana")

    assert excinfo.value.message == "Reward is out of stock (Campaign: January Mug Giveaway)."
    assert seeded_store.get(CAMPAIGNS, "camp_jan")["redemptions"] == 4
    assert seeded_store.list(redemptions_collection("cust_ana")) == []


def test_unlimited_stock_never_runs_out(seeded_store):
    seeded_store.update(INVENTORY, "item_mug", {"stock": "Unlimited"})
    seeded_store.update(CAMPAIGNS, "camp_jan", {"redemptions": 100000})

    _service(seeded_store).redeem("cust_ana")

    assert seeded_store.get(CAMPAIGNS, "camp_jan")["redemptions"] == 100001


def test_campaign_without_inventory_item(store):
    store.set(CAMPAIGNS, "camp_disc", make_campaign(
        rewardType="Discount", rewardValue="10% off", inventoryId=None,
    ))
    store.set(CUSTOMERS, "cust_ana", make_customer())

    result = _service(store).redeem("cust_ana")

    assert result.reward_value == "10% off"


def test_repeat_redemption_allowed_under_unlimited_policy(seeded_store):
    service = _service(seeded_store, policy=REDEMPTION_POLICY_UNLIMITED)

    service.redeem("cust_ana")
    service.redeem("cust_ana")

    assert seeded_store.get(CAMPAIGNS, "camp_jan")["redemptions"] == 2
    assert len(seeded_store.list(redemptions_collection("cust_ana"))) == 2


def test_repeat_redemption_rejected_under_once_policy(seeded_store):
    service = _service(seeded_store, policy=REDEMPTION_POLICY_ONCE)
    first = service.redeem("cust_ana")

    with pytest.raises(AlreadyRedeemed) as excinfo:
        service.redeem("cust_ana")

    redeemed_on = first.record.redeemed_at.date().isoformat()
    assert excinfo.value.message == f"Customer has already redeemed this offer on {redeemed_on}."
    assert seeded_store.get(CAMPAIGNS, "camp_jan")["redemptions"] == 1
    assert len(seeded_store.list(redemptions_collection("cust_ana"))) == 1


def test_failed_commit_leaves_state_unchanged(seeded_store):
    with patch.object(seeded_store, "_apply", side_effect=StoreError("write rejected")):
        with pytest.raises(TransactionFailure) as excinfo:
            _service(seeded_store).redeem("cust_ana")

    assert excinfo.value.message == "The redemption could not be recorded."
    assert seeded_store.get(CAMPAIGNS, "camp_jan")["redemptions"] == 0
    assert seeded_store.list(redemptions_collection("cust_ana")) == []
    assert seeded_store.get(CUSTOMERS, "cust_ana")["redemptions"] == {}


def test_concurrent_redemptions_cannot_oversubscribe_last_unit(seeded_store):
    seeded_store.update(INVENTORY, "item_mug", {"stock": 1})
    customer_ids = [f"cust_{i}" for i in range(8)]
    for customer_id in customer_ids:
        seeded_store.set(CUSTOMERS, customer_id, make_customer(email=f"{customer_id}@example.com"))

    service = _service(seeded_store)
    barrier = threading.Barrier(len(customer_ids))
    outcomes = []
    lock = threading.Lock()

    def scan(customer_id):
        barrier.wait()
        try:
            service.redeem(customer_id)
            outcome = "ok"
        except OutOfStock:
            outcome = "out_of_stock"
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=scan, args=(c,)) for c in customer_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("out_of_stock") == len(customer_ids) - 1
    assert seeded_store.get(CAMPAIGNS, "camp_jan")["redemptions"] == 1


def test_redemption_total_never_exceeds_stock(seeded_store):
    seeded_store.update(INVENTORY, "item_mug", {"stock": 3})
    service = _service(seeded_store, policy=REDEMPTION_POLICY_UNLIMITED)

    granted = 0
    for _ in range(5):
        try:
            service.redeem("cust_ana")
            granted += 1
        except OutOfStock:
            pass

    assert granted == 3
    assert seeded_store.get(CAMPAIGNS, "camp_jan")["redemptions"] == 3


def test_unknown_policy_rejected(store):
    with pytest.raises(ValueError):
        RedemptionTransactor(store, policy="sometimes")


@pytest.mark.parametrize("original_item", ["item_coffee", None])
def test_campaign_repointed_before_transaction_is_rejected(seeded_store, original_item):
    seeded_store.set(INVENTORY, "item_coffee", {"name": "Free Coffee", "stock": "Unlimited", "category": "Drinks"})
    seeded_store.set(INVENTORY, "item_last", {"name": "Last Tote", "stock": 1, "category": "Merch"})
    seeded_store.set(CAMPAIGNS, "camp_old", make_campaign(
        name="Old Tote", status="Finished", inventoryId="item_last", redemptions=1,
    ))
    seeded_store.update(CAMPAIGNS, "camp_jan", {"inventoryId": original_item})
    open_transaction = seeded_store.transaction

    def repoint_then_open():
        seeded_store.update(CAMPAIGNS, "camp_jan", {"inventoryId": "item_last"})
        return open_transaction()

    with patch.object(seeded_store, "transaction", side_effect=repoint_then_open):
        with pytest.raises(TransactionFailure):
            RedemptionTransactor(seeded_store).redeem("cust_ana", "camp_jan")

    assert seeded_store.get(CAMPAIGNS, "camp_jan")["redemptions"] == 0
    assert seeded_store.list(redemptions_collection("cust_ana")) == []
