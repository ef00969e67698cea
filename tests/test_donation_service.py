from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
import stripe
from botocore.exceptions import ClientError

from shelter_giving.models.donation import Donation
from shelter_giving.services.donation_service import DonationService


def make_service(data_access: MagicMock | None = None) -> tuple[DonationService, MagicMock, MagicMock]:
    data_access = data_access or MagicMock()
    data_access.mark_event_processed.return_value = True
    data_access.claim_donation_step.return_value = True
    sqs = MagicMock()
    service = DonationService(
        data_access=data_access,
        sqs_client=sqs,
        payment_queue_url="https://sqs/payments",
        notification_queue_url="https://sqs/notifications",
        stripe_webhook_secret="whsec_test",
    )
    return service, data_access, sqs


def succeeded_event(metadata: dict, event_id: str = "evt_1", amount: int = 2500) -> str:
    return json.dumps({
        "id": event_id,
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": "pi_1", "amount": amount, "currency": "usd", "metadata": metadata}},
    })


def test_create_payment_intent_passes_cents_through_and_records_donation() -> None:
    service, data_access, _ = make_service()
    intent = MagicMock(id="pi_1", client_secret="pi_1_secret_2")

    with patch("stripe.PaymentIntent.create", return_value=intent) as create:
        result = service.create_payment_intent(
            amount=2500, donor_email="ada@example.com", donor_name="Ada", is_emergency=True, currency="USD"
        )

    donation: Donation = data_access.create_donation_record.call_args.args[0]
    kwargs = create.call_args.kwargs
    assert kwargs["amount"] == 2500
    assert kwargs["currency"] == "usd"
    assert kwargs["metadata"] == {
        "donor_name": "Ada",
        "donor_email": "ada@example.com",
        "donation_type": "one-time",
        "is_emergency": "true",
        "donation_id": donation.donation_id,
    }
    assert donation.amount == 2500
    assert donation.status == "PENDING"
    assert result == {"client_secret": "pi_1_secret_2", "payment_intent_id": "pi_1", "donation_id": donation.donation_id}


def test_create_payment_intent_propagates_stripe_errors() -> None:
    service, _, _ = make_service()

    with patch("stripe.PaymentIntent.create", side_effect=stripe.APIConnectionError("down")):
        with pytest.raises(stripe.StripeError):
            service.create_payment_intent(amount=2500, donor_email="ada@example.com", donor_name="Ada")


def test_create_subscription_reuses_customer_product_and_price() -> None:
    service, data_access, _ = make_service()
    customer = MagicMock(id="cus_1")
    product = MagicMock(id="prod_1")
    product.name = "HALT Monthly Donation"
    price = MagicMock(id="price_1", unit_amount=2500)
    price.recurring.interval = "month"
    subscription = MagicMock(id="sub_1")
    subscription.latest_invoice.payment_intent.client_secret = "pi_sub_secret"
    subscription.latest_invoice.payment_intent.status = "requires_confirmation"

    with patch("stripe.Customer.list", return_value=MagicMock(data=[customer])), \
            patch("stripe.Customer.create") as create_customer, \
            patch("stripe.PaymentMethod.attach") as attach, \
            patch("stripe.Customer.modify") as modify, \
            patch("stripe.Product.list", return_value=MagicMock(data=[product])), \
            patch("stripe.Product.create") as create_product, \
            patch("stripe.Price.list", return_value=MagicMock(data=[price])), \
            patch("stripe.Price.create") as create_price, \
            patch("stripe.Subscription.create", return_value=subscription) as create_subscription:
        result = service.create_subscription(2500, "ada@example.com", "Ada", "pm_1")

    create_customer.assert_not_called()
    create_product.assert_not_called()
    create_price.assert_not_called()
    attach.assert_called_once_with("pm_1", customer="cus_1")
    modify.assert_called_once_with("cus_1", invoice_settings={"default_payment_method": "pm_1"})
    assert create_subscription.call_args.kwargs["items"] == [{"price": "price_1"}]
    donation: Donation = data_access.create_donation_record.call_args.args[0]
    assert donation.donation_type == "monthly"
    assert donation.stripe_subscription_id == "sub_1"
    assert result == {
        "subscription_id": "sub_1",
        "client_secret": "pi_sub_secret",
        "payment_intent_status": "requires_confirmation",
        "donation_id": donation.donation_id,
    }


def test_create_subscription_creates_missing_price() -> None:
    service, _, _ = make_service()
    product = MagicMock(id="prod_1")
    product.name = "HALT Monthly Donation"
    other_price = MagicMock(id="price_0", unit_amount=1000)
    other_price.recurring.interval = "month"
    subscription = MagicMock(id="sub_1")

    with patch("stripe.Customer.list", return_value=MagicMock(data=[])), \
            patch("stripe.Customer.create", return_value=MagicMock(id="cus_new")) as create_customer, \
            patch("stripe.PaymentMethod.attach"), \
            patch("stripe.Customer.modify"), \
            patch("stripe.Product.list", return_value=MagicMock(data=[product])), \
            patch("stripe.Price.list", return_value=MagicMock(data=[other_price])), \
            patch("stripe.Price.create", return_value=MagicMock(id="price_new")) as create_price, \
            patch("stripe.Subscription.create", return_value=subscription):
        service.create_subscription(2500, "ada@example.com", "Ada", "pm_1")

    create_customer.assert_called_once_with(email="ada@example.com", name="Ada")
    create_price.assert_called_once_with(
        unit_amount=2500, currency="usd", recurring={"interval": "month"}, product="prod_1"
    )


def test_webhook_is_verified_and_queued() -> None:
    service, _, sqs = make_service()
    event = {"id": "evt_1", "type": "payment_intent.succeeded"}

    with patch("stripe.Webhook.construct_event", return_value=event) as construct:
        service.queue_payment_webhook(b"{}", "t=1,v1=sig")

    construct.assert_called_once_with(payload=b"{}", sig_header="t=1,v1=sig", secret="whsec_test")
    sqs.send_message.assert_called_once_with(QueueUrl="https://sqs/payments", MessageBody=json.dumps(event))


def test_succeeded_payment_marks_donation_and_queues_one_receipt() -> None:
    service, data_access, sqs = make_service()
    data_access.update_donation_status.return_value = {"status": "SUCCEEDED"}
    metadata = {
        "donor_email": "ada@example.com",
        "donor_name": "Ada",
        "donation_id": "don_1",
        "donation_type": "one-time",
        "is_emergency": "true",
    }

    service.handle_payment_event(succeeded_event(metadata))

    data_access.update_donation_status.assert_called_once_with(
        donor_email="ada@example.com", donation_id="don_1", status="SUCCEEDED", payment_intent_id="pi_1"
    )
    data_access.update_total_donations.assert_called_once_with(2500)
    sqs.send_message.assert_called_once()
    job = json.loads(sqs.send_message.call_args.kwargs["MessageBody"])
    assert job == {
        "type": "RECEIPT",
        "email_to": "ada@example.com",
        "donor_name": "Ada",
        "amount_cents": 2500,
        "donation_id": "don_1",
        "donation_type": "one-time",
        "is_emergency": True,
    }


def test_redelivered_event_is_skipped() -> None:
    service, data_access, sqs = make_service()
    data_access.mark_event_processed.return_value = False

    service.handle_payment_event(succeeded_event({"donor_email": "ada@example.com", "donation_id": "don_1"}))

    data_access.update_donation_status.assert_not_called()
    sqs.send_message.assert_not_called()


def test_already_receipted_donation_sends_no_second_receipt() -> None:
    service, data_access, sqs = make_service()
    data_access.update_donation_status.return_value = None
    data_access.claim_donation_step.return_value = False

    service.handle_payment_event(succeeded_event({"donor_email": "ada@example.com", "donation_id": "don_1"}, "evt_2"))

    data_access.update_total_donations.assert_not_called()
    sqs.send_message.assert_not_called()


def test_invoice_payment_without_donation_id_creates_record() -> None:
    service, data_access, sqs = make_service()
    data_access.create_donation_record.return_value = {"PK": "USER#ada@example.com"}

    service.handle_payment_event(succeeded_event({"donor_email": "ada@example.com", "donation_type": "monthly"}))

    donation: Donation = data_access.create_donation_record.call_args.args[0]
    assert donation.donation_id == "pi_1"
    assert data_access.create_donation_record.call_args.kwargs == {"only_if_new": True}
    assert donation.status == "SUCCEEDED"
    assert donation.donation_type == "monthly"
    assert donation.stripe_payment_intent_id == "pi_1"
    sqs.send_message.assert_called_once()


def test_missing_donor_email_sends_no_receipt() -> None:
    service, data_access, sqs = make_service()

    service.handle_payment_event(succeeded_event({"donation_id": "don_1"}))

    data_access.update_donation_status.assert_not_called()
    sqs.send_message.assert_not_called()


def test_failed_payment_marks_donation_failed() -> None:
    service, data_access, sqs = make_service()
    event = json.dumps({
        "id": "evt_3",
        "type": "payment_intent.payment_failed",
        "data": {"object": {"id": "pi_1", "metadata": {"donor_email": "ada@example.com", "donation_id": "don_1"}}},
    })

    service.handle_payment_event(event)

    data_access.update_donation_status.assert_called_once_with(
        donor_email="ada@example.com", donation_id="don_1", status="FAILED", payment_intent_id="pi_1"
    )
    sqs.send_message.assert_not_called()


class InMemoryDonations:
    """Just enough of DynamoDataAccess to follow one donation through retries."""

    def __init__(self):
        self.events: set[str] = set()
        self.steps: set[tuple[str, str]] = set()
        self.totals = 0
        self.update_donation_status = MagicMock(return_value={"status": "SUCCEEDED"})

    def mark_event_processed(self, event_id, event_type, ttl_seconds):
        if event_id in self.events:
            return False
        self.events.add(event_id)
        return True

    def release_event(self, event_id):
        self.events.discard(event_id)

    def claim_donation_step(self, donor_email, donation_id, step):
        if (donation_id, step) in self.steps:
            return False
        self.steps.add((donation_id, step))
        return True

    def release_donation_step(self, donor_email, donation_id, step):
        self.steps.discard((donation_id, step))

    def update_total_donations(self, amount):
        self.totals += amount


def test_receipt_is_queued_when_the_first_attempt_fails() -> None:
    data_access = InMemoryDonations()
    sqs = MagicMock()
    sqs.send_message.side_effect = [ClientError({"Error": {"Code": "ServiceUnavailable"}}, "SendMessage"), {}]
    service = DonationService(data_access, sqs, "https://sqs/payments", "https://sqs/notifications", "whsec_test")
    body = succeeded_event({"donor_email": "ada@example.com", "donation_id": "don_1"})

    with pytest.raises(ClientError):
        service.handle_payment_event(body)
    service.handle_payment_event(body)
    service.handle_payment_event(body)

    assert sqs.send_message.call_count == 2
    assert data_access.totals == 2500
    assert "evt_1" in data_access.events


def test_failed_totals_update_is_retried_on_redelivery() -> None:
    data_access = InMemoryDonations()
    data_access.update_total_donations = MagicMock(side_effect=[ClientError({"Error": {"Code": "Throttling"}}, "UpdateItem"), None])
    sqs = MagicMock()
    service = DonationService(data_access, sqs, "https://sqs/payments", "https://sqs/notifications", "whsec_test")
    body = succeeded_event({"donor_email": "ada@example.com", "donation_id": "don_1"})

    with pytest.raises(ClientError):
        service.handle_payment_event(body)
    sqs.send_message.assert_not_called()

    service.handle_payment_event(body)

    assert data_access.update_total_donations.call_count == 2
    sqs.send_message.assert_called_once()
