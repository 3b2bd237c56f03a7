import pytest

from dayboard.api.deps import get_current_identity
from dayboard.main import app
from dayboard.schemas import Identity
from dayboard.utils.dates import add_months, utcnow

SUBSCRIPTION = "/api/v1/subscription"
STRIPE = "/api/v1/stripe"


@pytest.fixture
def loyal_pro(seed_subscription, billing):
    billing.add_subscription("sub_1", price_id="price_pro")
    seed_subscription(
        plan_type="pro",
        status="active",
        stripe_customer_id="cus_1",
        stripe_subscription_id="sub_1",
        stripe_price_id="price_pro",
        pro_started_at=add_months(utcnow(), -4),
    )


def test_get_subscription_defaults_to_free(client):
    response = client.get(SUBSCRIPTION)
    assert response.status_code == 200
    body = response.json()
    assert body["subscription"]["plan_type"] == "free"
    assert body["subscription"]["status"] == "none"
    assert body["eligible_for_premium_bonus"] is False


def test_features_follow_effective_plan(client, seed_subscription):
    assert client.get(f"{SUBSCRIPTION}/features").json()["limits"]["ai_suggestions"] is False

    seed_subscription(plan_type="pro", status="active")
    features = client.get(f"{SUBSCRIPTION}/features").json()
    assert features["plan"] == "pro"
    assert features["limits"]["ai_suggestions"] is True
    assert features["limits"]["ai_agent"] is False

    seed_subscription(plan_type="premium", status="past_due")
    assert client.get(f"{SUBSCRIPTION}/features").json()["plan"] == "free"


def test_claim_premium_bonus_once(client, loyal_pro):
    assert client.get(SUBSCRIPTION).json()["eligible_for_premium_bonus"] is True

    response = client.post(f"{SUBSCRIPTION}/claim-premium-bonus")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["subscription"]["plan_type"] == "premium"
    assert body["subscription"]["status"] == "trialing"
    assert body["subscription"]["premium_bonus_claimed"] is True

    again = client.post(f"{SUBSCRIPTION}/claim-premium-bonus")
    assert again.status_code == 403
    assert again.json()["detail"] == "Not eligible for Premium bonus"

    history = client.get(f"{SUBSCRIPTION}/history").json()
    assert [(e["from_plan"], e["to_plan"], e["reason"]) for e in history] == [
        ("pro", "premium", "loyalty_bonus_claimed")
    ]


def test_claim_premium_bonus_not_eligible(client):
    response = client.post(f"{SUBSCRIPTION}/claim-premium-bonus")
    assert response.status_code == 403


def test_claim_premium_bonus_provider_failure(client, loyal_pro, billing):
    billing.fail = True
    response = client.post(f"{SUBSCRIPTION}/claim-premium-bonus")
    assert response.status_code == 500
    billing.fail = False
    assert client.get(SUBSCRIPTION).json()["subscription"]["plan_type"] == "pro"


def test_cancel_reactivate_and_change_plan(client, loyal_pro):
    assert client.post(f"{SUBSCRIPTION}/cancel").json()["cancel_at_period_end"] is True
    assert client.post(f"{SUBSCRIPTION}/reactivate").json()["cancel_at_period_end"] is False

    changed = client.post(f"{SUBSCRIPTION}/change-plan", json={"plan": "premium"})
    assert changed.status_code == 200
    assert changed.json()["plan_type"] == "premium"
    assert client.post(f"{SUBSCRIPTION}/change-plan", json={"plan": "premium"}).status_code == 400
    assert client.post(f"{SUBSCRIPTION}/change-plan", json={"plan": "free"}).status_code == 400


def test_cancel_without_subscription(client):
    response = client.post(f"{SUBSCRIPTION}/cancel")
    assert response.status_code == 404
    assert response.json()["detail"] == "No active subscription found"


def test_create_checkout(client, billing):
    response = client.post(f"{STRIPE}/create-checkout", json={"plan": "pro"})
    assert response.status_code == 200
    assert response.json() == {"url": "https://checkout.stripe.test/cs_test_1", "session_id": "cs_test_1"}
    [call] = billing.calls_to("create_checkout_session")
    assert call["trial_days"] == 14
    assert call["user_id"] == "user_123"

    assert client.get(SUBSCRIPTION).json()["subscription"]["stripe_customer_id"] == "cus_new_1"


def test_create_checkout_invalid_plan(client, billing):
    response = client.post(f"{STRIPE}/create-checkout", json={"plan": "enterprise"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid plan"
    assert billing.calls == []


def test_create_checkout_without_email(client):
    app.dependency_overrides[get_current_identity] = lambda: Identity(user_id="user_123")
    response = client.post(f"{STRIPE}/create-checkout", json={"plan": "pro"})
    assert response.status_code == 400
    assert response.json()["detail"] == "No email found"


def test_create_checkout_missing_body(client):
    assert client.post(f"{STRIPE}/create-checkout", json={}).status_code == 400


def test_portal(client, seed_subscription):
    response = client.post(f"{STRIPE}/portal")
    assert response.status_code == 404
    assert response.json()["detail"] == "No active subscription found"

    seed_subscription(stripe_customer_id="cus_1")
    response = client.post(f"{STRIPE}/portal")
    assert response.status_code == 200
    assert response.json()["url"] == "https://billing.stripe.test/cus_1"
