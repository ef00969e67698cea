"""
Donation amount rules shared by the donor-side flow and the API.

Amounts cross every boundary as integer cents. Dollars only appear in
strings produced for display.
"""
import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

MIN_DONATION_CENTS = 100
MAX_DONATION_CENTS = 1_000_000


@dataclass(frozen=True)
class AmountValidation:
    valid: bool
    error: str | None = None


def parse_amount(amount) -> float | None:
    """The numeric value of ``amount``, or None when it is not a finite number."""
    if amount is None or isinstance(amount, bool):
        return None
    if isinstance(amount, (int, float, Decimal)):
        value = float(amount)
    else:
        try:
            value = float(Decimal(str(amount).strip()))
        except (InvalidOperation, ValueError):
            return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def validate_amount(
    amount,
    min_cents: int = MIN_DONATION_CENTS,
    max_cents: int = MAX_DONATION_CENTS,
) -> AmountValidation:
    value = parse_amount(amount)
    # cents are whole units
    if value is None or not value.is_integer():
        return AmountValidation(valid=False, error="Please enter a valid amount")
    if value < min_cents:
        return AmountValidation(valid=False, error=f"Minimum donation is {format_currency(min_cents)}")
    if value > max_cents:
        return AmountValidation(valid=False, error=f"Maximum donation is {format_currency(max_cents)}")
    return AmountValidation(valid=True)


def to_cents(dollars) -> int:
    return int(math.floor(float(dollars) * 100 + 0.5))


def format_dollars(amount_cents: int) -> str:
    return f"{amount_cents / 100:.2f}"


def format_currency(amount_cents: int, currency: str = "usd") -> str:
    symbol = "$" if currency.lower() == "usd" else f"{currency.upper()} "
    return f"{symbol}{amount_cents / 100:,.2f}"


PRESET_AMOUNTS = [
    (2_500, "Feeds 5 animals for a day"),
    (5_000, "Provides basic veterinary care"),
    (10_000, "Sponsors an animal's shelter stay"),
    (25_000, "Covers emergency medical treatment"),
    (50_000, "Funds a complete rescue operation"),
    (100_000, "Supports shelter operations for a week"),
]

EMERGENCY_PRESET_AMOUNTS = [
    (5_000, "Emergency medication for 1 animal"),
    (15_000, "Emergency surgery supplies"),
    (30_000, "Complete emergency veterinary care"),
    (75_000, "Multiple animal emergency response"),
    (150_000, "Mobile emergency unit deployment"),
]


def predefined_amounts(is_emergency: bool = False) -> list[dict]:
    tiers = EMERGENCY_PRESET_AMOUNTS if is_emergency else PRESET_AMOUNTS
    return [{"amount_cents": cents, "impact": impact} for cents, impact in tiers]


def impact_message(amount_dollars: float, is_emergency: bool = False) -> str:
    if is_emergency:
        if amount_dollars >= 300:
            return "Your donation can fund complete emergency veterinary care for an animal in critical condition."
        if amount_dollars >= 150:
            return "Your donation provides essential emergency surgery supplies."
        return "Your donation helps provide emergency medication for animals in need."

    if amount_dollars >= 1000:
        return "Your generous gift will fund a complete rescue operation and help multiple animals find their forever homes!"
    if amount_dollars >= 500:
        return "Your donation will sponsor an animal's complete shelter stay from rescue to adoption!"
    if amount_dollars >= 250:
        return "Your gift will provide emergency medical treatment that could save an animal's life!"
    if amount_dollars >= 100:
        return "Your donation will sponsor an animal's shelter stay and help them find a loving home!"
    if amount_dollars >= 50:
        return "Your gift will provide basic veterinary care to help an animal recover!"
    return "Your donation will help feed and care for animals in need!"
