from pydantic import AfterValidator, BaseModel, EmailStr, Field, field_validator
from typing import Annotated, Literal, Optional
from datetime import datetime

from shelter_giving.core.amounts import validate_amount
from shelter_giving.core.config import get_settings


def _check_amount(value: int) -> int:
    settings = get_settings()
    result = validate_amount(value, settings.MIN_DONATION_CENTS, settings.MAX_DONATION_CENTS)
    if not result.valid:
        raise ValueError(result.error)
    return value


# cents, bounded by the configured min/max
DonationAmount = Annotated[int, AfterValidator(_check_amount)]


class DonationMetadata(BaseModel):
    donor_name: str = Field(min_length=1)
    donor_email: EmailStr
    donation_type: Literal["one-time", "monthly"] = "one-time"
    is_emergency: bool = False

    @field_validator("donor_name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Donor name is required")
        return value


class PaymentIntentRequest(BaseModel):
    amount: DonationAmount
    currency: str = "usd"
    metadata: DonationMetadata


class PaymentIntentResponse(BaseModel):
    client_secret: str
    payment_intent_id: str


class SubscriptionRequest(BaseModel):
    amount: DonationAmount
    email: EmailStr
    name: str = Field(min_length=1)
    payment_method_id: str


class SubscriptionResponse(BaseModel):
    subscription_id: str
    client_secret: str
    payment_intent_status: str
    donation_id: str


class PublicDonationResponse(BaseModel):
    donor_name: Optional[str] = None
    amount: int
    currency: str
    created_at: datetime


class TotalDonationResponse(BaseModel):
    total_amount_dollars: float


class DonationStatsResponse(BaseModel):
    total_amount_dollars: float
    donation_count: int


class LikeResponse(BaseModel):
    success: bool = True
    likes: int
    added: bool = False
    removed: bool = False
