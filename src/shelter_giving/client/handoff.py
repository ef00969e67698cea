"""
Hand-off of a successful donation to the confirmation page.

The donation form stores a ``DonationResult`` (amount in cents) in session
storage and navigates to ``/donate/success``. The page takes it exactly once
and converts to dollars for display. With nothing stored (reload, direct
link) it falls back to the ``amount``/``type``/``emergency`` query
parameters.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Mapping

from pydantic import BaseModel

from shelter_giving.client.donation_form import DonationSuccess
from shelter_giving.client.mailbox import Mailbox
from shelter_giving.core.amounts import format_dollars, impact_message

logger = logging.getLogger(__name__)

SUCCESS_KEY = "_donate_success_data"
SUCCESS_ROUTE = "/donate/success"


class DonationResult(BaseModel):
    charge_id: str | None = None
    amount_cents: int
    donation_type: str = "one-time"
    is_emergency: bool = False

    @classmethod
    def from_success(cls, success: DonationSuccess) -> "DonationResult":
        return cls(
            charge_id=success.charge.get("id"),
            amount_cents=success.amount_cents,
            donation_type=success.donation_type,
            is_emergency=success.is_emergency,
        )


class DonationSummary(BaseModel):
    amount: str  # dollars, two decimals
    donation_type: str = "one-time"
    is_emergency: bool = False
    charge_id: str | None = None

    @property
    def impact(self) -> str:
        return impact_message(float(self.amount), self.is_emergency)


def hand_off_success(success: DonationSuccess, mailbox: Mailbox) -> str:
    """Stores the result for the confirmation page and returns the route to navigate to."""
    mailbox.put(SUCCESS_KEY, DonationResult.from_success(success))
    return SUCCESS_ROUTE


def _query_dollars(raw: str | None) -> str:
    try:
        value = Decimal((raw or "0").strip())
    except InvalidOperation:
        return "0.00"
    if not value.is_finite():
        return "0.00"
    return f"{value:.2f}"


class ConfirmationPage:
    def __init__(self, mailbox: Mailbox):
        self.mailbox = mailbox
        self.summary: DonationSummary | None = None

    def load(self, query_params: Mapping[str, str] | None = None) -> DonationSummary:
        # a second load on the same page (re-render) keeps what was shown
        if self.summary is not None:
            return self.summary

        stored = self.mailbox.take_once(SUCCESS_KEY, DonationResult)
        if stored is not None and stored.amount_cents > 0:
            self.summary = DonationSummary(
                amount=format_dollars(stored.amount_cents),
                donation_type=stored.donation_type or "one-time",
                is_emergency=stored.is_emergency,
                charge_id=stored.charge_id,
            )
            return self.summary

        logger.info("No stored donation found, reading query parameters")
        params = query_params or {}
        self.summary = DonationSummary(
            amount=_query_dollars(params.get("amount")),
            donation_type=params.get("type") or "one-time",
            is_emergency=params.get("emergency") == "true",
        )
        return self.summary
