import logging
from botocore.exceptions import ClientError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from shelter_giving.core.amounts import format_dollars, impact_message

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, client, from_email: str):
        self.ses_client = client
        self.from_email = from_email

    @retry(
        wait=wait_exponential(multiplier=1, min=1, max=4),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(ClientError),
        reraise=True
    )
    def send_donation_receipt(
        self,
        email_to: str,
        amount_cents: int,
        donation_id: str,
        donor_name: str = "Supporter",
        donation_type: str = "one-time",
        is_emergency: bool = False,
    ):
        amount_dollars = format_dollars(amount_cents)
        kind = "emergency donation" if is_emergency else "donation"
        subject = "Thank you for your donation!"
        lines = [
            f"Hello {donor_name},",
            "",
            f"Thank you for your generous {kind} of ${amount_dollars}.",
            impact_message(amount_cents / 100, is_emergency),
            "",
            f"Your donation ID is: {donation_id}",
        ]
        if donation_type == "monthly":
            lines.append("Your monthly donation will automatically process on this day each month.")
        lines += ["", "We appreciate your support!"]
        body_text = "\n".join(lines)

        logger.info(f"Sending receipt for donation {donation_id} to {email_to}")

        self.ses_client.send_email(
            Source=self.from_email,
            Destination={'ToAddresses': [email_to]},
            Message={
                'Subject': {'Data': subject},
                'Body': {'Text': {'Data': body_text}}
            }
        )

        logger.info(f"Successfully sent receipt to {email_to}")
