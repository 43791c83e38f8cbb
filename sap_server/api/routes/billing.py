"""
SAP Server — Billing Routes
Stripe Checkout for stamps, memberships and credit packs.
"""
import logging

from fastapi import APIRouter, HTTPException, status

from sap_server.schemas.schemas import CheckoutSessionRequest, CheckoutSessionResponse
from sap_server.services.billing import create_checkout_session

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/create-checkout-session",
    response_model=CheckoutSessionResponse,
    summary="Create checkout session",
    description="Create a one-time Stripe Checkout session tagged with the user and payment type.",
)
async def create_checkout(request: CheckoutSessionRequest):
    try:
        session_id = await create_checkout_session(
            price_id=request.price_id,
            user_id=request.user_id,
            payment_type=request.type,
        )
    except Exception as e:
        logger.error(f"Stripe error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create checkout session",
        )
    return CheckoutSessionResponse(session_id=session_id)
