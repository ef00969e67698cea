import json
import logging
from shelter_giving.core.dependencies import get_notification_service

# We need to configure logging here since workers are entry points
from shelter_giving.core.logging_config import configure_logging
configure_logging()

logger = logging.getLogger(__name__)


def lambda_handler(event, context):
    logger.info(f"Received {len(event['Records'])} notification jobs.")
    notification_service = get_notification_service()

    for record in event['Records']:
        try:
            job = json.loads(record['body'])

            if job.get("type") == "RECEIPT":
                notification_service.send_donation_receipt(
                    email_to=job['email_to'],
                    amount_cents=job['amount_cents'],
                    donation_id=job['donation_id'],
                    donor_name=job.get('donor_name') or "Supporter",
                    donation_type=job.get('donation_type', "one-time"),
                    is_emergency=bool(job.get('is_emergency', False))
                )
            else:
                logger.warning(f"Unknown notification job type: {job.get('type')}")

        except Exception as e:
            logger.error(f"CRITICAL: Failed to process message {record['messageId']}. Error: {e}")
            raise

    return {'statusCode': 200}
