import logging

import httpx
from pydantic import BaseModel

from shelter_giving.client.errors import ServerError
from shelter_giving.client.http import post_json

logger = logging.getLogger(__name__)

CREATE_INTENT_PATH = "/donations/create-payment-intent"


class PaymentIntentSecret(BaseModel):
    client_secret: str
    payment_intent_id: str | None = None


class PaymentIntentClient:
    """Asks the shelter backend (never Stripe directly) for a PaymentIntent client secret."""

    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    async def create_intent(self, amount_cents: int, currency: str = "usd",
                            metadata: dict | None = None) -> PaymentIntentSecret:
        body = await post_json(
            self.http,
            CREATE_INTENT_PATH,
            {"amount": amount_cents, "currency": currency, "metadata": metadata or {}},
            failure_message="Failed to create payment intent",
        )
        if not body.get("client_secret"):
            raise ServerError("Failed to create payment intent")

        logger.info(f"Payment intent ready for {amount_cents} cents")
        return PaymentIntentSecret(
            client_secret=body["client_secret"],
            payment_intent_id=body.get("payment_intent_id"),
        )
