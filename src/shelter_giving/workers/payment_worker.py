import logging
from shelter_giving.core.dependencies import get_donation_service

# We need to configure logging here since workers are entry points
from shelter_giving.core.logging_config import configure_logging
configure_logging()

logger = logging.getLogger(__name__)


def lambda_handler(event, context):
    logger.info(f"Received {len(event['Records'])} payment events.")
    donation_service = get_donation_service()

    for record in event['Records']:
        try:
            donation_service.handle_payment_event(record['body'])
        except Exception as e:
            logger.error(f"Error processing payment event {record.get('messageId')}: {e}")
            raise

    return {'statusCode': 200}
