import json
import stripe
import logging
from botocore.exceptions import ClientError

from shelter_giving.data_access.dynamodb import DynamoDataAccess
from shelter_giving.models.donation import Donation

logger = logging.getLogger(__name__)

# per-donation flags, each set once so a retried event resumes where it stopped
TOTALS_COUNTED = "totals_counted"
RECEIPT_QUEUED = "receipt_queued"


def _metadata_flag(value) -> bool:
    return value is True or str(value).lower() == "true"


class DonationService:
    def __init__(
        self,
        data_access: DynamoDataAccess,
        sqs_client,
        payment_queue_url: str,
        notification_queue_url: str,
        stripe_webhook_secret: str,
        currency: str = "usd",
        monthly_product_name: str = "HALT Monthly Donation",
        processed_event_ttl_seconds: int = 7 * 24 * 60 * 60,
    ):
        self.data_access = data_access
        self.sqs_client = sqs_client
        self.payment_queue_url = payment_queue_url
        self.notification_queue_url = notification_queue_url
        self.stripe_webhook_secret = stripe_webhook_secret
        self.currency = currency
        self.monthly_product_name = monthly_product_name
        self.processed_event_ttl_seconds = processed_event_ttl_seconds

    def create_payment_intent(
        self,
        amount: int,
        donor_email: str,
        donor_name: str,
        donation_type: str = "one-time",
        is_emergency: bool = False,
        currency: str | None = None,
    ) -> dict:
        """Creates a pending donation and the PaymentIntent the browser confirms.

        ``amount`` is already in cents; it is passed to Stripe untouched.
        """
        currency = (currency or self.currency).lower()
        donation = Donation(
            donor_email=donor_email,
            donor_name=donor_name,
            amount=amount,
            currency=currency,
            donation_type=donation_type,
            is_emergency=is_emergency,
        )
        self.data_access.create_donation_record(donation)

        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                automatic_payment_methods={"enabled": True},
                metadata={
                    "donor_name": donor_name,
                    "donor_email": donor_email,
                    "donation_type": donation_type,
                    "is_emergency": "true" if is_emergency else "false",
                    "donation_id": donation.donation_id
                },
                idempotency_key=donation.donation_id,
            )
        except stripe.StripeError as e:
            logger.error(f"Error creating Stripe intent: {e}")
            raise

        logger.info(
            "Payment intent created",
            extra={"payment_intent_id": intent.id, "donation_id": donation.donation_id, "amount_cents": amount},
        )
        return {
            "client_secret": intent.client_secret,
            "payment_intent_id": intent.id,
            "donation_id": donation.donation_id,
        }

    def _find_or_create_customer(self, email: str, name: str):
        existing = stripe.Customer.list(email=email, limit=1)
        if existing.data:
            return existing.data[0]
        return stripe.Customer.create(email=email, name=name)

    def _find_or_create_monthly_price(self, amount: int):
        products = stripe.Product.list(limit=100)
        product = next((p for p in products.data if p.name == self.monthly_product_name), None)
        if product is None:
            product = stripe.Product.create(name=self.monthly_product_name)

        prices = stripe.Price.list(product=product.id, limit=100)
        for price in prices.data:
            recurring = price.recurring
            if price.unit_amount == amount and recurring and recurring.interval == "month":
                return price

        return stripe.Price.create(
            unit_amount=amount,
            currency=self.currency,
            recurring={"interval": "month"},
            product=product.id,
        )

    def create_subscription(self, amount: int, email: str, name: str, payment_method_id: str) -> dict:
        try:
            customer = self._find_or_create_customer(email, name)

            stripe.PaymentMethod.attach(payment_method_id, customer=customer.id)
            stripe.Customer.modify(
                customer.id,
                invoice_settings={"default_payment_method": payment_method_id},
            )

            price = self._find_or_create_monthly_price(amount)
            subscription = stripe.Subscription.create(
                customer=customer.id,
                items=[{"price": price.id}],
                expand=["latest_invoice.payment_intent"],
                metadata={
                    "donor_name": name,
                    "donor_email": email,
                    "donation_type": "monthly",
                },
            )
        except stripe.StripeError as e:
            logger.error(f"Error creating Stripe subscription: {e}")
            raise

        donation = Donation(
            donor_email=email,
            donor_name=name,
            amount=amount,
            currency=self.currency,
            donation_type="monthly",
            stripe_customer_id=customer.id,
            stripe_subscription_id=subscription.id,
        )
        self.data_access.create_donation_record(donation)

        payment_intent = subscription.latest_invoice.payment_intent
        logger.info(f"Subscription {subscription.id} created for donation {donation.donation_id}.")
        return {
            "subscription_id": subscription.id,
            "client_secret": payment_intent.client_secret,
            "payment_intent_status": payment_intent.status,
            "donation_id": donation.donation_id,
        }

    def queue_payment_webhook(self, payload: bytes, signature_header: str):
        try:
            event = stripe.Webhook.construct_event(
                payload=payload,
                sig_header=signature_header,
                secret=self.stripe_webhook_secret
            )

            self.sqs_client.send_message(
                QueueUrl=self.payment_queue_url,
                MessageBody=json.dumps(event)
            )
        except ValueError as e:
            logger.error(f"Webhook error: Invalid payload - {e}")
            raise
        except stripe.SignatureVerificationError as e:
            logger.error(f"Webhook error: Invalid signature - {e}")
            raise
        except ClientError as e:
            logger.error(f"SQS Error: {e}")
            raise

    def handle_payment_event(self, event_body: str):
        event = json.loads(event_body)
        event_type = event['type']

        if event.get('id') and not self.data_access.mark_event_processed(
            event['id'], event_type, self.processed_event_ttl_seconds
        ):
            logger.info(f"Stripe event {event['id']} already processed, skipping.")
            return

        try:
            self._dispatch_event(event_type, event['data']['object'])
        except Exception:
            if event.get('id'):
                # let the SQS redelivery run the unfinished steps
                self.data_access.release_event(event['id'])
            raise

    def _dispatch_event(self, event_type: str, obj: dict):
        if event_type == 'payment_intent.succeeded':
            self._handle_payment_succeeded(obj)
        elif event_type == 'payment_intent.payment_failed':
            self._handle_payment_failed(obj)
        elif event_type == 'charge.refunded':
            logger.info(f"Refund received for charge {obj.get('id')}, no action taken.")
        else:
            logger.warning(f"Received unhandled event type: {event_type}")

    def _handle_payment_succeeded(self, intent: dict):
        metadata = intent.get('metadata') or {}
        email = metadata.get('donor_email') or intent.get('receipt_email')
        donor_name = metadata.get('donor_name') or "Supporter"
        donation_type = metadata.get('donation_type') or "one-time"
        is_emergency = _metadata_flag(metadata.get('is_emergency'))
        payment_intent_id = intent['id']
        amount = intent['amount']

        if not email or "@" not in email:
            logger.warning(f"Payment {payment_intent_id} has no usable donor email, skipping receipt.")
            return

        donation_id = metadata.get('donation_id')
        if donation_id:
            self.data_access.update_donation_status(
                donor_email=email,
                donation_id=donation_id,
                status="SUCCEEDED",
                payment_intent_id=payment_intent_id
            )
        else:
            # invoice payments for subscriptions carry no donation id; key them by the intent
            donation_id = payment_intent_id
            donation = Donation(
                donation_id=donation_id,
                donor_email=email,
                donor_name=donor_name,
                amount=amount,
                currency=intent.get('currency', self.currency),
                donation_type=donation_type,
                is_emergency=is_emergency,
                status="SUCCEEDED",
                stripe_payment_intent_id=payment_intent_id,
                stripe_customer_id=intent.get('customer'),
            )
            self.data_access.create_donation_record(donation, only_if_new=True)

        if self.data_access.claim_donation_step(email, donation_id, TOTALS_COUNTED):
            try:
                self.data_access.update_total_donations(amount)
            except Exception:
                self.data_access.release_donation_step(email, donation_id, TOTALS_COUNTED)
                raise

        if not self.data_access.claim_donation_step(email, donation_id, RECEIPT_QUEUED):
            logger.info(f"Receipt for payment {payment_intent_id} already queued, skipping.")
            return

        notification_job = {
            "type": "RECEIPT",
            "email_to": email,
            "donor_name": donor_name,
            "amount_cents": amount,
            "donation_id": donation_id,
            "donation_type": donation_type,
            "is_emergency": is_emergency,
        }
        try:
            self.sqs_client.send_message(
                QueueUrl=self.notification_queue_url,
                MessageBody=json.dumps(notification_job)
            )
        except Exception:
            self.data_access.release_donation_step(email, donation_id, RECEIPT_QUEUED)
            raise
        logger.info(f"Successfully processed payment {payment_intent_id}.")

    def _handle_payment_failed(self, intent: dict):
        metadata = intent.get('metadata') or {}
        email = metadata.get('donor_email')
        donation_id = metadata.get('donation_id')
        payment_intent_id = intent['id']

        if not email or not donation_id:
            logger.warning(f"Failed payment {payment_intent_id} has no donation metadata.")
            return

        updated_attributes = self.data_access.update_donation_status(
            donor_email=email,
            donation_id=donation_id,
            status="FAILED",
            payment_intent_id=payment_intent_id
        )

        if updated_attributes:
            logger.warning(f"Payment failed for donation {donation_id}.")
        else:
            logger.info(f"Skipped duplicate processing for failed payment {donation_id}.")

    def list_recent_donations(self, limit: int = 10) -> list[dict]:
        return self.data_access.get_recent_donations(limit)

    def get_total_donations(self) -> dict:
        return self.data_access.get_total_donations()
