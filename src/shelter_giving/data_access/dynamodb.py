import time
import logging
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from shelter_giving.models.blog import BlogLike
from shelter_giving.models.donation import Donation

logger = logging.getLogger(__name__)

USER_PREFIX = "USER#"
DONATION_PREFIX = "DONATION#"
TOTALS_PK = "TOTALS"
DONATION_SUM_SK = "DONATION_SUM"
EVENT_PREFIX = "EVENT#"
PROCESSED_SK = "PROCESSED"
BLOG_PREFIX = "BLOG#"
POST_SK = "POST"
LIKE_PREFIX = "LIKE#"


def _is_conditional_failure(error: ClientError) -> bool:
    return error.response['Error']['Code'] == 'ConditionalCheckFailedException'


class DynamoDataAccess:
    def __init__(self, table):
        self.table = table

    # -- donations ---------------------------------------------------------

    def create_donation_record(self, donation: Donation, only_if_new: bool = False) -> dict | None:
        """Writes the donation. With ``only_if_new`` an existing record is left alone and None is returned."""
        item = {
            "PK": f"{USER_PREFIX}{donation.donor_email}",
            "SK": f"{DONATION_PREFIX}{donation.donation_id}",
            "donation_id": donation.donation_id,
            "donor_email": donation.donor_email,
            "donor_name": donation.donor_name,
            "amount": donation.amount,
            "currency": donation.currency,
            "donation_type": donation.donation_type,
            "is_emergency": donation.is_emergency,
            "status": donation.status,
            "stripe_payment_intent_id": donation.stripe_payment_intent_id,
            "stripe_customer_id": donation.stripe_customer_id,
            "stripe_subscription_id": donation.stripe_subscription_id,
            "created_at": donation.created_at.isoformat()
        }

        if not only_if_new:
            self.table.put_item(Item=item)
            return item
        try:
            self.table.put_item(Item=item, ConditionExpression="attribute_not_exists(SK)")
            return item
        except ClientError as e:
            if _is_conditional_failure(e):
                return None
            raise

    def update_donation_status(self, donor_email: str, donation_id: str,
                               status: str, payment_intent_id: str) -> dict | None:
        """Returns the updated item, or None when the donation already had ``status``."""
        try:
            response = self.table.update_item(
                Key={
                    "PK": f"{USER_PREFIX}{donor_email}",
                    "SK": f"{DONATION_PREFIX}{donation_id}"
                },
                UpdateExpression="SET #status = :s, #stripe_id = :pid",
                ConditionExpression="#status <> :s",
                ExpressionAttributeNames={
                    "#status": "status",
                    "#stripe_id": "stripe_payment_intent_id"
                },
                ExpressionAttributeValues={
                    ":s": status,
                    ":pid": payment_intent_id
                },
                ReturnValues="ALL_NEW"
            )
            return response.get("Attributes", {})
        except ClientError as e:
            if _is_conditional_failure(e):
                logger.info(f"Idempotency check: Donation {donation_id} status is already {status}.")
                return None
            logger.error(f"Error updating donation status: {e}")
            raise

    def claim_donation_step(self, donor_email: str, donation_id: str, step: str) -> bool:
        """Sets the ``step`` flag on a donation. False when it was already set."""
        try:
            self.table.update_item(
                Key={
                    "PK": f"{USER_PREFIX}{donor_email}",
                    "SK": f"{DONATION_PREFIX}{donation_id}"
                },
                UpdateExpression="SET #step = :true",
                ConditionExpression="attribute_exists(SK) AND attribute_not_exists(#step)",
                ExpressionAttributeNames={"#step": step},
                ExpressionAttributeValues={":true": True},
            )
            return True
        except ClientError as e:
            if _is_conditional_failure(e):
                return False
            logger.error(f"Error claiming {step} for donation {donation_id}: {e}")
            raise

    def release_donation_step(self, donor_email: str, donation_id: str, step: str) -> None:
        self.table.update_item(
            Key={
                "PK": f"{USER_PREFIX}{donor_email}",
                "SK": f"{DONATION_PREFIX}{donation_id}"
            },
            UpdateExpression="REMOVE #step",
            ExpressionAttributeNames={"#step": step},
        )

    def get_recent_donations(self, limit=10) -> list[dict]:
        try:
            response = self.table.query(
                IndexName="RecentDonationsIndex",
                KeyConditionExpression=Key("status").eq("SUCCEEDED"),
                ScanIndexForward=False,
                Limit=limit
            )
            return response.get("Items", [])
        except ClientError as e:
            logger.error(f"Error getting recent donations: {e}")
            raise

    def update_total_donations(self, amount: int):
        try:
            self.table.update_item(
                Key={
                    "PK": TOTALS_PK,
                    "SK": DONATION_SUM_SK
                },
                UpdateExpression=(
                    "SET #total = if_not_exists(#total, :start) + :inc, "
                    "#count = if_not_exists(#count, :start) + :one"
                ),
                ExpressionAttributeNames={
                    "#total": "TotalAmountCents",
                    "#count": "DonationCount"
                },
                ExpressionAttributeValues={
                    ":inc": amount,
                    ":one": 1,
                    ":start": 0
                },
            )
        except ClientError as e:
            logger.error(f"Error updating total donations: {e}")
            raise

    def get_total_donations(self) -> dict:
        key = {
            "PK": TOTALS_PK,
            "SK": DONATION_SUM_SK
        }
        response = self.table.get_item(Key=key)
        item = response.get("Item") or {}

        return {
            'TotalAmountCents': int(item.get('TotalAmountCents', 0)),
            'DonationCount': int(item.get('DonationCount', 0)),
        }

    # -- stripe events -----------------------------------------------------

    def mark_event_processed(self, event_id: str, event_type: str, ttl_seconds: int) -> bool:
        """Records a Stripe event id. False means it was seen before."""
        try:
            self.table.put_item(
                Item={
                    "PK": f"{EVENT_PREFIX}{event_id}",
                    "SK": PROCESSED_SK,
                    "event_type": event_type,
                    "processed_at": int(time.time()),
                    "expires_at": int(time.time()) + ttl_seconds,
                },
                ConditionExpression="attribute_not_exists(PK)"
            )
            return True
        except ClientError as e:
            if _is_conditional_failure(e):
                return False
            logger.error(f"Error recording stripe event {event_id}: {e}")
            raise

    def release_event(self, event_id: str) -> None:
        """Forgets a Stripe event so a redelivery is processed again."""
        self.table.delete_item(Key={"PK": f"{EVENT_PREFIX}{event_id}", "SK": PROCESSED_SK})

    # -- blog likes --------------------------------------------------------

    def get_blog_post(self, post_id: str) -> dict | None:
        response = self.table.get_item(Key={"PK": f"{BLOG_PREFIX}{post_id}", "SK": POST_SK})
        return response.get("Item")

    def get_blog_like(self, post_id: str, liker_key: str) -> dict | None:
        response = self.table.get_item(
            Key={"PK": f"{BLOG_PREFIX}{post_id}", "SK": f"{LIKE_PREFIX}{liker_key}"}
        )
        return response.get("Item")

    def create_blog_like(self, like: BlogLike, ttl_seconds: int | None = None) -> bool:
        """False when the same reader already liked the post."""
        item = {
            "PK": f"{BLOG_PREFIX}{like.post_id}",
            "SK": f"{LIKE_PREFIX}{like.liker_key}",
            "post_id": like.post_id,
            "liker_key": like.liker_key,
            "created_at": like.created_at.isoformat(),
        }
        if ttl_seconds:
            item["expires_at"] = int(like.created_at.timestamp()) + ttl_seconds
        try:
            self.table.put_item(Item=item, ConditionExpression="attribute_not_exists(SK)")
            return True
        except ClientError as e:
            if _is_conditional_failure(e):
                return False
            raise

    def delete_blog_like(self, post_id: str, liker_key: str) -> bool:
        """False when there was no like to remove."""
        try:
            self.table.delete_item(
                Key={"PK": f"{BLOG_PREFIX}{post_id}", "SK": f"{LIKE_PREFIX}{liker_key}"},
                ConditionExpression="attribute_exists(SK)"
            )
            return True
        except ClientError as e:
            if _is_conditional_failure(e):
                return False
            raise

    def increment_blog_likes(self, post_id: str, delta: int) -> int:
        response = self.table.update_item(
            Key={"PK": f"{BLOG_PREFIX}{post_id}", "SK": POST_SK},
            UpdateExpression="SET #likes = if_not_exists(#likes, :zero) + :delta",
            ExpressionAttributeNames={"#likes": "likes"},
            ExpressionAttributeValues={":delta": delta, ":zero": 0},
            ReturnValues="UPDATED_NEW"
        )
        return max(0, int(response.get("Attributes", {}).get("likes", 0)))
