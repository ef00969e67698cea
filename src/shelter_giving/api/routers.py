from fastapi import (
    APIRouter,
    Request,
    Header,
    Depends,
    HTTPException
)
import stripe
import logging

from shelter_giving.api.rate_limit import client_ip, rate_limit
from shelter_giving.api.schemas import (
    DonationStatsResponse,
    LikeResponse,
    PaymentIntentRequest,
    PaymentIntentResponse,
    PublicDonationResponse,
    SubscriptionRequest,
    SubscriptionResponse,
    TotalDonationResponse,
)
from shelter_giving.core.dependencies import get_blog_service, get_donation_service
from shelter_giving.services.blog_service import BlogLikeService, BlogPostNotFound
from shelter_giving.services.donation_service import DonationService

router = APIRouter()
logger = logging.getLogger(__name__)


def _stripe_message(error: stripe.StripeError) -> str:
    return getattr(error, "user_message", None) or str(error) or "Payment provider error"


@router.post(
    "/donations/create-payment-intent",
    response_model=PaymentIntentResponse,
    dependencies=[Depends(rate_limit("donations"))]
)
def create_payment_intent(
    body: PaymentIntentRequest,
    donation_service: DonationService = Depends(get_donation_service)
):
    try:
        result = donation_service.create_payment_intent(
            amount=body.amount,
            donor_email=body.metadata.donor_email,
            donor_name=body.metadata.donor_name,
            donation_type=body.metadata.donation_type,
            is_emergency=body.metadata.is_emergency,
            currency=body.currency
        )
        return PaymentIntentResponse(
            client_secret=result["client_secret"],
            payment_intent_id=result["payment_intent_id"]
        )

    except stripe.StripeError as e:
        raise HTTPException(status_code=502, detail=_stripe_message(e))
    except Exception as e:
        logger.exception(f"Error creating payment intent: {e}")
        raise HTTPException(status_code=500, detail="Failed to create payment intent")


@router.post(
    "/donations/create-subscription",
    response_model=SubscriptionResponse,
    dependencies=[Depends(rate_limit("donations"))]
)
def create_subscription(
    body: SubscriptionRequest,
    donation_service: DonationService = Depends(get_donation_service)
):
    try:
        result = donation_service.create_subscription(
            amount=body.amount,
            email=body.email,
            name=body.name.strip(),
            payment_method_id=body.payment_method_id
        )
        return SubscriptionResponse(**result)

    except stripe.StripeError as e:
        raise HTTPException(status_code=502, detail=_stripe_message(e))
    except Exception as e:
        logger.exception(f"Error creating subscription: {e}")
        raise HTTPException(status_code=500, detail="Failed to create subscription")


@router.post("/webhooks/stripe")
async def handle_stripe_webhook(
    request: Request,
    stripe_signature: str = Header(...),
    donation_service: DonationService = Depends(get_donation_service)
):
    """
    Receives webhook events from Stripe, validates them,
    and queues them in SQS for background processing.
    """
    payload = await request.body()

    try:
        donation_service.queue_payment_webhook(
            payload=payload,
            signature_header=stripe_signature
        )

        return {"status": "queued"}

    except stripe.SignatureVerificationError as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        raise HTTPException(status_code=400, detail="Invalid signature")
    except ValueError as e:
        logger.warning(f"Webhook invalid payload: {e}")
        raise HTTPException(status_code=400, detail="Invalid payload")
    except Exception as e:
        logger.error(f"Webhook internal error: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get(
    "/donations/recent",
    response_model=list[PublicDonationResponse]
)
def get_recent_donations(donation_service: DonationService = Depends(get_donation_service)):
    return donation_service.list_recent_donations(limit=10)


@router.get(
    "/donations/total",
    response_model=TotalDonationResponse
)
def get_total_donations(donation_service: DonationService = Depends(get_donation_service)):
    total_cents = donation_service.get_total_donations().get('TotalAmountCents', 0)

    return TotalDonationResponse(total_amount_dollars=total_cents / 100.0)


@router.get(
    "/donations/stats",
    response_model=DonationStatsResponse
)
def get_donation_stats(donation_service: DonationService = Depends(get_donation_service)):
    totals = donation_service.get_total_donations()

    return DonationStatsResponse(
        total_amount_dollars=totals.get('TotalAmountCents', 0) / 100.0,
        donation_count=totals.get('DonationCount', 0)
    )


@router.post(
    "/blog/{post_id}/like",
    response_model=LikeResponse,
    dependencies=[Depends(rate_limit("likes"))]
)
def like_blog_post(
    post_id: str,
    request: Request,
    blog_service: BlogLikeService = Depends(get_blog_service)
):
    try:
        result = blog_service.toggle_like(post_id, client_ip=client_ip(request))
    except BlogPostNotFound:
        raise HTTPException(status_code=404, detail="Blog not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception(f"Like blog error: {e}")
        raise HTTPException(status_code=500, detail="Server error")

    return LikeResponse(success=True, likes=result.likes, added=result.added, removed=result.removed)
