"""End-to-end tests for the PromoFlow HTTP API."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from conftest import TODAY, make_campaign, make_customer
from promoflow.api_server import create_app
from promoflow.config import Settings
from promoflow.llm.base_client import LLMResponse
from promoflow.llm.manager import LLMClientManager
from promoflow.notifications import RedemptionNotifier


def _llm_returning(payload):
    client = MagicMock()
    client.model = "gemini-1.5-flash"
    client.generate = AsyncMock(return_value=LLMResponse(
        text=payload if isinstance(payload, str) else json.dumps(payload),
        model="gemini-1.5-flash", provider="gemini",
        token_count=10, input_tokens=6, output_tokens=4,
    ))
    return LLMClientManager(clients={"gemini": client})


@pytest.fixture
def notifier():
    notifier = MagicMock(spec=RedemptionNotifier)
    notifier.notify = AsyncMock(return_value=True)
    return notifier


def _client(store, notifier=None, llm=None, **settings):
    app = create_app(
        settings=Settings(**settings),
        store=store,
        llm_manager=llm or LLMClientManager(clients={}),
        notifier=notifier or RedemptionNotifier(None, "rewards@shop.test"),
        today=lambda: TODAY,
    )
    return TestClient(app)


def test_health(seeded_store):
    response = _client(seeded_store).get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["store"] == "memory"


def test_redeem_success_sends_notification(seeded_store, notifier):
    client = _client(seeded_store, notifier=notifier)

    response = client.post("/api/redeem", json={"customerId": "cust_ana"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["customerName"] == "Ana Lopez"
    assert body["campaignName"] == "January Mug Giveaway"
    assert body["rewardValue"] == "Branded Mug"
    notifier.notify.assert_called_once()
    customer, record = notifier.notify.call_args.args
    assert customer.id == "cust_ana"
    assert record.id == body["redemptionId"]


def test_redeem_succeeds_when_notification_fails(seeded_store, notifier):
    notifier.notify = AsyncMock(return_value=False)

    response = _client(seeded_store, notifier=notifier).post("/api/redeem", json={"customerId": "cust_ana"})

    assert response.status_code == 200
    assert seeded_store.get("campaigns", "camp_jan")["redemptions"] == 1


@pytest.mark.parametrize("customer_id, status, kind, message", [
    ("bogus", 400, "InvalidCustomerId", "The scanned code is not a valid customer ID."),
    ("cust_ghost", 404, "CustomerNotFound", "Customer ID not found."),
])
def test_redeem_failures_have_distinct_messages(seeded_store, customer_id, status, kind, message):
    response = _client(seeded_store).post("/api/redeem", json={"customerId": customer_id})

    assert response.status_code == status
    assert response.json() == {"error": kind, "message": message}


def test_redeem_without_active_campaign(seeded_store):
    seeded_store.update("campaigns", "camp_jan", {"status": "Finished"})

    response = _client(seeded_store).post("/api/redeem", json={"customerId": "cust_ana"})

    assert response.status_code == 409
    assert response.json()["message"] == "No active campaigns available for redemption."


def test_redeem_out_of_stock(seeded_store):
    seeded_store.update("inventory", "item_mug", {"stock": 0})

    response = _client(seeded_store).post("/api/redeem", json={"customerId": "cust_ana"})

    assert response.status_code == 409
    assert response.json() == {
        "error": "OutOfStock",
        "message": "Reward is out of stock (Campaign: January Mug Giveaway).",
    }


def test_redeem_twice_policy(seeded_store):
    once = _client(seeded_store)
    assert once.post("/api/redeem", json={"customerId": "cust_ana"}).status_code == 200

    second = once.post("/api/redeem", json={"customerId": "cust_ana"})
    assert second.status_code == 409
    assert second.json()["error"] == "AlreadyRedeemed"

    unlimited = _client(seeded_store, redemption_policy="unlimited")
    assert unlimited.post("/api/redeem", json={"customerId": "cust_ana"}).status_code == 200
    assert seeded_store.get("campaigns", "camp_jan")["redemptions"] == 2


def test_opt_in_then_redeem(store):
    client = _client(store)
    item = client.post("/api/inventory", json={"name": "Free Coffee", "stock": "unlimited", "category": "Drinks"}).json()
    created = client.post("/api/campaigns", json={
        "name": "Coffee Week",
        "status": "Active",
        "inventoryId": item["id"],
        "startDate": "2024-01-10",
        "endDate": "2024-01-20",
    })
    assert created.status_code == 201
    assert created.json()["rewardValue"] == "Free Coffee"
    assert created.json()["redemptions"] == 0

    signup = client.post("/api/opt-in", json={
        "name": "Ana Lopez", "email": "ana@example.com",
        "phone": "555-0100", "birthdate": "1990-04-12",
    }).json()
    assert signup["created"] is True
    customer_id = signup["customer"]["id"]
    assert signup["qrCodeUrl"].endswith(f"data={customer_id}")

    again = client.post("/api/opt-in", json={"name": "Ana", "email": "ana@example.com"}).json()
    assert again["created"] is False
    assert again["customer"]["id"] == customer_id

    redeemed = client.post("/api/redeem", json={"customerId": customer_id})
    assert redeemed.status_code == 200
    assert redeemed.json()["rewardValue"] == "Free Coffee"

    history = client.get(f"/api/customers/{customer_id}/redemptions").json()
    assert [r["campaignName"] for r in history] == ["Coffee Week"]


def test_create_campaign_with_unknown_item(store):
    response = _client(store).post("/api/campaigns", json={
        "name": "Ghost", "inventoryId": "nope",
        "startDate": "2024-01-01", "endDate": "2024-01-31",
    })

    assert response.status_code == 404
    assert response.json()["message"] == "Invalid inventory item selected."


def test_update_campaign_keeps_counter(seeded_store):
    seeded_store.update("campaigns", "camp_jan", {"redemptions": 5})

    response = _client(seeded_store).patch("/api/campaigns/camp_jan", json={"status": "Finished"})

    assert response.status_code == 200
    assert response.json()["status"] == "Finished"
    assert response.json()["redemptions"] == 5


def test_active_campaign_endpoint(seeded_store):
    seeded_store.set("campaigns", "camp_later", make_campaign(name="Later", startDate="2024-01-10"))

    response = _client(seeded_store).get("/api/campaigns/active")

    assert response.json()["campaign"]["id"] == "camp_jan"


def test_inventory_invalid_stock(store):
    response = _client(store).post("/api/inventory", json={"name": "Mug", "stock": "lots", "category": "Merch"})

    assert response.status_code == 422
    assert response.json()["error"] == "InvalidStock"


def test_inventory_availability(seeded_store):
    seeded_store.update("campaigns", "camp_jan", {"redemptions": 45})

    rows = _client(seeded_store).get("/api/inventory/availability").json()

    assert rows[0]["available"] == 5
    assert rows[0]["status"] == "Low Stock"


def test_reward_candidates(seeded_store):
    seeded_store.update("campaigns", "camp_jan", {"redemptions": 45})

    rewards = _client(seeded_store).get("/api/inventory/rewards").json()

    assert rewards == [{"rewardId": "item_mug", "rewardDescription": "Branded Mug", "quantityAvailable": 5}]


def test_dashboard_analytics(seeded_store):
    seeded_store.set("campaigns", "camp_feb", make_campaign(name="February", status="Scheduled", redemptions=3))
    seeded_store.update("campaigns", "camp_jan", {"redemptions": 7})

    summary = _client(seeded_store).get("/api/dashboard/analytics").json()

    assert summary["totalRedemptions"] == 10
    assert summary["activeCampaigns"] == 1
    assert summary["totalCustomers"] == 1
    assert summary["topCampaign"]["id"] == "camp_jan"


def test_run_birthday_flow(seeded_store):
    llm = _llm_returning({"rewardId": "item_mug", "rewardDescription": "Branded Mug", "reasoning": "Fits."})

    response = _client(seeded_store, llm=llm).post("/api/flows/birthdayRewardFlow", json={"input": {
        "customerId": "cust_ana",
        "customerData": {"name": "Ana", "birthdate": "1990-04-12", "preferences": "mugs"},
        "availableRewards": [{"rewardId": "item_mug", "rewardDescription": "Branded Mug", "quantityAvailable": 50}],
    }})

    assert response.status_code == 200
    assert response.json()["rewardId"] == "item_mug"


def test_unknown_flow(seeded_store):
    response = _client(seeded_store).post("/api/flows/nope", json={"input": {}})

    assert response.status_code == 404


def test_flow_invalid_input(seeded_store):
    llm = _llm_returning("{}")

    response = _client(seeded_store, llm=llm).post("/api/flows/birthdayRewardFlow", json={"input": {"customerId": "x"}})

    assert response.status_code == 422


def test_social_reward_bad_model_output(seeded_store):
    llm = _llm_returning("no json here")

    response = _client(seeded_store, llm=llm).post(
        "/api/social-rewards", json={"customerId": "cust_ana", "platform": "twitter"},
    )

    assert response.status_code == 502
    assert response.json()["message"] == "The AI model did not return a valid reward selection."


def test_social_reward_without_providers(seeded_store):
    response = _client(seeded_store).post(
        "/api/social-rewards", json={"customerId": "cust_ana", "platform": "twitter"},
    )

    assert response.status_code == 502
    assert response.json()["error"] == "ExternalServiceFailure"


def test_customer_email_stays_unique(seeded_store):
    seeded_store.set("customers", "cust_bo", make_customer(name="Bo", email="bo@example.com"))
    client = _client(seeded_store)

    response = client.patch("/api/customers/cust_bo", json={"email": "ana@example.com"})

    assert response.status_code == 409
    assert response.json()["error"] == "EmailAlreadyRegistered"
    emails = sorted(data["email"] for _, data in seeded_store.list("customers"))
    assert emails == ["ana@example.com", "bo@example.com"]


def test_campaign_update_cannot_invert_dates(seeded_store):
    response = _client(seeded_store).patch("/api/campaigns/camp_jan", json={"endDate": "2023-12-01"})

    assert response.status_code == 422
    assert response.json()["error"] == "InvalidCampaignDates"
    assert seeded_store.get("campaigns", "camp_jan")["endDate"] == "2024-01-31"


def test_campaign_name_needs_three_characters(seeded_store):
    response = _client(seeded_store).post("/api/campaigns", json={
        "name": "Go", "inventoryId": "item_mug",
        "startDate": "2024-01-01", "endDate": "2024-01-31",
    })

    assert response.status_code == 422
    assert len(seeded_store.list("campaigns")) == 1


def test_top_campaign_tie_goes_to_later_campaign(seeded_store):
    seeded_store.update("campaigns", "camp_jan", {"redemptions": 4})
    seeded_store.set("campaigns", "camp_z", make_campaign(name="Later Tie", redemptions=4))

    summary = _client(seeded_store).get("/api/dashboard/analytics").json()

    assert summary["topCampaign"]["id"] == "camp_z"
