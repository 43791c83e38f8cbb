"""
SAP Server — Stripe Webhook
Appends a payment record for every completed checkout.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from sap_server.core.dependencies import get_repository
from sap_server.services.billing import construct_webhook_event, payment_from_checkout
from sap_server.services.repository import StatsRepository, StoreError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/stripe-webhook", include_in_schema=False)
async def stripe_webhook(
    request: Request,
    repository: StatsRepository = Depends(get_repository),
):
    """Verify and handle a Stripe webhook event. Raw body is required for the signature."""
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not sig_header:
        logger.warning("Webhook received without Stripe-Signature header")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing signature")

    try:
        event = construct_webhook_event(payload, sig_header)
    except ValueError as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    event_type = event["type"]
    logger.info(f"Stripe webhook: {event_type}")

    if event_type == "checkout.session.completed":
        record = payment_from_checkout(event["data"]["object"])
        if record is not None:
            try:
                await repository.insert_payment(record)
            except StoreError as e:
                logger.error(f"Failed to record payment: {e}")
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail="Failed to record payment",
                )

    return {"received": True}
