import boto3
import stripe
from functools import lru_cache

from shelter_giving.core.config import get_settings
from shelter_giving.data_access.dynamodb import DynamoDataAccess
from shelter_giving.services.blog_service import BlogLikeService
from shelter_giving.services.donation_service import DonationService
from shelter_giving.services.notification_service import NotificationService


@lru_cache()
def get_boto_session() -> boto3.Session:
    settings = get_settings()
    return boto3.Session(
        region_name=settings.AWS_REGION,
        profile_name=settings.AWS_PROFILE
    )


@lru_cache()
def get_dynamo_table() -> DynamoDataAccess:
    session = get_boto_session()
    dynamo_resource = session.resource('dynamodb')
    table = dynamo_resource.Table(get_settings().DYNAMODB_TABLE_NAME)
    return DynamoDataAccess(table=table)


@lru_cache()
def get_notification_service() -> NotificationService:
    session = get_boto_session()
    ses_client = session.client('ses')
    return NotificationService(
        client=ses_client,
        from_email=get_settings().SES_FROM_EMAIL
    )


@lru_cache()
def get_donation_service() -> DonationService:
    settings = get_settings()
    stripe.api_key = settings.STRIPE_SECRET_KEY

    session = get_boto_session()
    sqs_client = session.client('sqs')

    return DonationService(
        data_access=get_dynamo_table(),
        sqs_client=sqs_client,
        payment_queue_url=settings.PAYMENT_QUEUE_URL,
        notification_queue_url=settings.NOTIFICATION_QUEUE_URL,
        stripe_webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        currency=settings.DEFAULT_CURRENCY,
        monthly_product_name=settings.MONTHLY_PRODUCT_NAME,
        processed_event_ttl_seconds=settings.PROCESSED_EVENT_TTL_SECONDS
    )


@lru_cache()
def get_blog_service() -> BlogLikeService:
    settings = get_settings()
    return BlogLikeService(
        data_access=get_dynamo_table(),
        ip_salt=settings.IP_SALT,
        like_ttl_seconds=settings.BLOGLIKE_TTL_SECONDS
    )
