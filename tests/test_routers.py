from __future__ import annotations

from typing import Iterator
from unittest.mock import MagicMock

import pytest
import stripe
from fastapi.testclient import TestClient

from shelter_giving.api.main import app
from shelter_giving.core.dependencies import get_blog_service, get_donation_service
from shelter_giving.models.blog import LikeResult
from shelter_giving.services.blog_service import BlogPostNotFound


@pytest.fixture()
def donation_service() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def blog_service() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def client(donation_service: MagicMock, blog_service: MagicMock) -> Iterator[TestClient]:
    app.dependency_overrides[get_donation_service] = lambda: donation_service
    app.dependency_overrides[get_blog_service] = lambda: blog_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def intent_body(amount: int = 2500, **metadata) -> dict:
    meta = {"donor_name": "Ada", "donor_email": "ada@example.com", "donation_type": "one-time", "is_emergency": True}
    meta.update(metadata)
    return {"amount": amount, "currency": "usd", "metadata": meta}


def test_create_payment_intent_returns_client_secret(client: TestClient, donation_service: MagicMock) -> None:
    donation_service.create_payment_intent.return_value = {
        "client_secret": "pi_1_secret_2", "payment_intent_id": "pi_1", "donation_id": "don_1"
    }

    response = client.post("/donations/create-payment-intent", json=intent_body())

    assert response.status_code == 200
    assert response.json() == {"client_secret": "pi_1_secret_2", "payment_intent_id": "pi_1"}
    donation_service.create_payment_intent.assert_called_once_with(
        amount=2500,
        donor_email="ada@example.com",
        donor_name="Ada",
        donation_type="one-time",
        is_emergency=True,
        currency="usd",
    )


def test_amount_below_minimum_is_rejected(client: TestClient, donation_service: MagicMock) -> None:
    response = client.post("/donations/create-payment-intent", json=intent_body(amount=50))

    assert response.status_code == 422
    assert "Minimum donation is $1.00" in response.text
    donation_service.create_payment_intent.assert_not_called()


@pytest.mark.parametrize("metadata", [{"donor_email": "not-an-email"}, {"donor_name": "   "}])
def test_bad_donor_metadata_is_rejected(client: TestClient, metadata: dict) -> None:
    response = client.post("/donations/create-payment-intent", json=intent_body(**metadata))

    assert response.status_code == 422


def test_stripe_failure_surfaces_provider_message(client: TestClient, donation_service: MagicMock) -> None:
    donation_service.create_payment_intent.side_effect = stripe.APIConnectionError("Stripe is unreachable")

    response = client.post("/donations/create-payment-intent", json=intent_body())

    assert response.status_code == 502
    assert response.json()["detail"] == "Stripe is unreachable"


def test_create_subscription(client: TestClient, donation_service: MagicMock) -> None:
    donation_service.create_subscription.return_value = {
        "subscription_id": "sub_1",
        "client_secret": "pi_s_secret",
        "payment_intent_status": "requires_action",
        "donation_id": "don_2",
    }

    response = client.post(
        "/donations/create-subscription",
        json={"amount": 1000, "email": "ada@example.com", "name": " Ada ", "payment_method_id": "pm_1"},
    )

    assert response.status_code == 200
    assert response.json()["subscription_id"] == "sub_1"
    donation_service.create_subscription.assert_called_once_with(
        amount=1000, email="ada@example.com", name="Ada", payment_method_id="pm_1"
    )


def test_webhook_queues_event(client: TestClient, donation_service: MagicMock) -> None:
    response = client.post("/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1,v1=abc"})

    assert response.status_code == 200
    assert response.json() == {"status": "queued"}
    donation_service.queue_payment_webhook.assert_called_once_with(payload=b"{}", signature_header="t=1,v1=abc")


def test_webhook_with_bad_signature_is_rejected(client: TestClient, donation_service: MagicMock) -> None:
    donation_service.queue_payment_webhook.side_effect = stripe.SignatureVerificationError("bad", "t=1,v1=abc")

    response = client.post("/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1,v1=abc"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid signature"


def test_totals_are_reported_in_dollars(client: TestClient, donation_service: MagicMock) -> None:
    donation_service.get_total_donations.return_value = {"TotalAmountCents": 123456, "DonationCount": 7}

    total = client.get("/donations/total").json()
    stats = client.get("/donations/stats").json()

    assert total == {"total_amount_dollars": 1234.56}
    assert stats == {"total_amount_dollars": 1234.56, "donation_count": 7}


def test_like_toggle_uses_forwarded_ip(client: TestClient, blog_service: MagicMock) -> None:
    blog_service.toggle_like.return_value = LikeResult(likes=3, added=True)

    response = client.post("/blog/p1/like", headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "likes": 3, "added": True, "removed": False}
    blog_service.toggle_like.assert_called_once_with("p1", client_ip="203.0.113.9")


def test_like_on_unknown_post_is_404(client: TestClient, blog_service: MagicMock) -> None:
    blog_service.toggle_like.side_effect = BlogPostNotFound("p404")

    response = client.post("/blog/p404/like")

    assert response.status_code == 404


def test_likes_are_rate_limited_per_ip(client: TestClient, blog_service: MagicMock) -> None:
    blog_service.toggle_like.return_value = LikeResult(likes=1, added=True)
    headers = {"X-Forwarded-For": "198.51.100.7"}

    statuses = [client.post("/blog/p1/like", headers=headers).status_code for _ in range(11)]
    other_reader = client.post("/blog/p1/like", headers={"X-Forwarded-For": "198.51.100.8"})

    assert statuses[:10] == [200] * 10
    assert statuses[10] == 429
    assert other_reader.status_code == 200


def test_responses_carry_cors_headers(client: TestClient) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "*"
