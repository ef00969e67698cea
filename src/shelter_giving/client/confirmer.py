import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import stripe

from shelter_giving.client.errors import NotReadyError

logger = logging.getLogger(__name__)

CARD_FAILURE = "Your card could not be charged. Please try again."


class PaymentSDK(Protocol):
    async def confirm_card_payment(self, client_secret: str, payment_method: dict) -> dict:
        ...


class CardForm(Protocol):
    def get_element(self, kind: str) -> Any:
        ...


@dataclass
class CardElement:
    """Tokenised card input; ``token`` is what the card widget hands back (e.g. ``tok_visa``)."""
    token: str


@dataclass
class CardFormState:
    card: CardElement | None = None

    def get_element(self, kind: str):
        return self.card if kind == "card" else None


@dataclass(frozen=True)
class ConfirmationResult:
    success: bool
    charge: dict | None = None
    error: str | None = None


class StripePaymentSDK:
    """Confirms PaymentIntents with the publishable key, as Stripe.js does in the browser."""

    def __init__(self, publishable_key: str):
        self.publishable_key = publishable_key

    def _confirm(self, client_secret: str, payment_method: dict) -> dict:
        card = payment_method["card"]
        intent_id = client_secret.split("_secret_")[0]
        try:
            intent = stripe.PaymentIntent.confirm(
                intent_id,
                client_secret=client_secret,
                payment_method_data={
                    "type": "card",
                    "card": {"token": card.token},
                    "billing_details": payment_method.get("billing_details", {}),
                },
                api_key=self.publishable_key,
            )
        except stripe.StripeError as e:
            return {"error": {"message": getattr(e, "user_message", None) or str(e)}}
        return {"paymentIntent": {"id": intent.id, "amount": intent.amount, "status": intent.status}}

    async def confirm_card_payment(self, client_secret: str, payment_method: dict) -> dict:
        return await asyncio.to_thread(self._confirm, client_secret, payment_method)


class CardPaymentConfirmer:
    async def confirm(self, sdk: PaymentSDK | None, form: CardForm | None,
                      client_secret: str, billing_details: dict | None = None) -> ConfirmationResult:
        if sdk is None or form is None:
            raise NotReadyError("Stripe has not loaded yet")

        card = form.get_element("card")
        if card is None:
            raise NotReadyError("Card element not found")

        # Stripe would mail its own receipt if it saw the email; the webhook sends ours.
        billing = {k: v for k, v in (billing_details or {}).items() if k != "email" and v}

        result = await sdk.confirm_card_payment(
            client_secret,
            {"card": card, "billing_details": billing},
        )

        if result.get("error"):
            message = result["error"].get("message") or CARD_FAILURE
            logger.warning(f"Card payment declined: {message}")
            return ConfirmationResult(success=False, error=message)

        return ConfirmationResult(success=True, charge=result.get("paymentIntent"))
