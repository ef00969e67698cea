import uuid
from datetime import datetime
from pydantic import BaseModel, Field, EmailStr
from typing import Literal


DonationStatus = Literal["PENDING", "SUCCEEDED", "FAILED"]
DonationType = Literal["one-time", "monthly"]


class Donation(BaseModel):
    donor_email: EmailStr
    donor_name: str | None = None
    donation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    amount: int  # cents
    currency: str = "usd"
    donation_type: DonationType = "one-time"
    is_emergency: bool = False
    status: DonationStatus = "PENDING"

    stripe_payment_intent_id: str | None = None
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None

    created_at: datetime = Field(default_factory=datetime.now)
