"""
Donation form controller.

Drives one form through ``IDLE -> VALIDATING -> CREATING_INTENT -> CONFIRMING``
and on to ``SUCCEEDED`` or ``FAILED``. A failed form can be submitted again;
nothing is retried automatically.
"""
import logging
from typing import Callable, Literal

from pydantic import BaseModel

from shelter_giving.client.confirmer import CardForm, CardPaymentConfirmer, PaymentSDK
from shelter_giving.client.errors import GENERIC_FAILURE, ShelterClientError
from shelter_giving.client.payment_intent import PaymentIntentClient
from shelter_giving.client.state import (
    BUSY_DONATION_STATES,
    DonationEvent,
    DonationState,
    transition,
)
from shelter_giving.core.amounts import MAX_DONATION_CENTS, MIN_DONATION_CENTS, parse_amount, validate_amount

logger = logging.getLogger(__name__)

NOT_READY = "Payment system is not ready. Please try again."
MISSING_AMOUNT = "Please enter a valid donation amount."


class DonorInfo(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    anonymous: bool = False


class DonationIntent(BaseModel):
    amount: int  # cents
    currency: str = "usd"
    donor_name: str
    donor_email: str
    donation_type: Literal["one-time", "monthly"] = "one-time"
    is_emergency: bool = False

    @classmethod
    def from_form(cls, donor: DonorInfo, amount_cents: int, currency: str,
                  donation_type: str, is_emergency: bool) -> "DonationIntent":
        return cls(
            amount=amount_cents,
            currency=currency,
            donor_name="Anonymous" if donor.anonymous else donor.name,
            donor_email=donor.email,
            donation_type=donation_type,
            is_emergency=is_emergency,
        )

    def to_metadata(self) -> dict:
        return {
            "donor_name": self.donor_name,
            "donor_email": self.donor_email,
            "donation_type": self.donation_type,
            "is_emergency": self.is_emergency,
        }


class DonationSuccess(BaseModel):
    charge: dict
    donor_info: DonorInfo
    amount_cents: int
    donation_type: str
    is_emergency: bool


class DonationFormController:
    def __init__(
        self,
        intents: PaymentIntentClient,
        confirmer: CardPaymentConfirmer,
        sdk: PaymentSDK | None,
        form: CardForm | None,
        amount_cents: int | None,
        donation_type: str = "one-time",
        is_emergency: bool = False,
        currency: str = "usd",
        on_success: Callable[[DonationSuccess], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
        min_cents: int = MIN_DONATION_CENTS,
        max_cents: int = MAX_DONATION_CENTS,
    ):
        self.intents = intents
        self.confirmer = confirmer
        self.sdk = sdk
        self.form = form
        self.amount_cents = amount_cents
        self.donation_type = donation_type
        self.is_emergency = is_emergency
        self.currency = currency
        self.on_success = on_success
        self.on_error = on_error
        self.min_cents = min_cents
        self.max_cents = max_cents

        self.donor = DonorInfo()
        self.state = DonationState.IDLE
        self.error: str | None = None
        self.result: DonationSuccess | None = None

    def update_donor(self, **fields) -> None:
        self.donor = self.donor.model_copy(update=fields)

    @property
    def ready(self) -> bool:
        return self.sdk is not None and self.form is not None

    @property
    def busy(self) -> bool:
        return self.state in BUSY_DONATION_STATES

    @property
    def aria_busy(self) -> bool:
        return self.busy

    @property
    def disabled(self) -> bool:
        return self.busy or not self.ready or not self.amount_cents or not self.donor.email

    def _advance(self, event: DonationEvent) -> None:
        self.state = transition(self.state, event)

    def _fail(self, message: str) -> None:
        self.error = message
        self._advance(DonationEvent.ERROR)

    def reset(self) -> None:
        self._advance(DonationEvent.RESET)
        self.error = None
        self.result = None

    async def submit(self) -> DonationSuccess | None:
        if self.busy:
            # raises IllegalTransition: one submission in flight per form
            self._advance(DonationEvent.SUBMIT)

        if not self.ready:
            self.error = NOT_READY
            return None
        # non-numeric input is left to the validator
        value = parse_amount(self.amount_cents)
        if self.amount_cents in (None, "") or (value is not None and value <= 0):
            self.error = MISSING_AMOUNT
            return None

        self._advance(DonationEvent.SUBMIT)
        self.error = None

        validation = validate_amount(self.amount_cents, self.min_cents, self.max_cents)
        if not validation.valid:
            self.error = validation.error
            self._advance(DonationEvent.REJECTED)
            logger.info(f"Donation rejected before payment: {validation.error}")
            return None
        self._advance(DonationEvent.VALIDATED)

        try:
            intent = DonationIntent.from_form(
                self.donor, int(value), self.currency, self.donation_type, self.is_emergency
            )
            secret = await self.intents.create_intent(intent.amount, intent.currency, intent.to_metadata())
            self._advance(DonationEvent.INTENT_CREATED)

            confirmation = await self.confirmer.confirm(
                self.sdk,
                self.form,
                secret.client_secret,
                {
                    "name": "Anonymous Donor" if self.donor.anonymous else self.donor.name,
                    "email": self.donor.email,
                    "phone": self.donor.phone,
                },
            )
        except ShelterClientError as e:
            logger.warning(f"Donation failed in {self.state.name}: {e.user_message}")
            self._fail(e.user_message)
            if self.on_error:
                self.on_error(e)
            return None
        except Exception as e:
            logger.exception("Unexpected donation failure")
            self._fail(GENERIC_FAILURE)
            if self.on_error:
                self.on_error(e)
            return None

        if not confirmation.success:
            self._fail(confirmation.error or GENERIC_FAILURE)
            return None

        charge = confirmation.charge or {}
        self.result = DonationSuccess(
            charge=charge,
            donor_info=self.donor,
            amount_cents=int(charge.get("amount") or intent.amount),
            donation_type=self.donation_type,
            is_emergency=self.is_emergency,
        )
        self._advance(DonationEvent.CONFIRMED)
        logger.info(f"Donation {charge.get('id')} succeeded")

        if self.on_success:
            self.on_success(self.result)
        return self.result
