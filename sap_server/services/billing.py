"""
SAP Server — Billing Service
Stripe one-time checkout sessions for stamps, memberships and credits,
plus webhook verification.
"""
import logging
from typing import Optional

import stripe
from fastapi.concurrency import run_in_threadpool

from sap_server.core.config import settings
from sap_server.core.records import PaymentRecord, PaymentType, utcnow

logger = logging.getLogger(__name__)


def _init_stripe():
    """Point the Stripe client at the configured secret key."""
    stripe.api_key = settings.STRIPE_SECRET_KEY


_init_stripe()


def _success_url() -> str:
    return f"{settings.DOMAIN}/sap?session_id={{CHECKOUT_SESSION_ID}}&success=true"


def _cancel_url() -> str:
    return f"{settings.DOMAIN}/sap?canceled=true"


async def create_checkout_session(price_id: str, user_id: str, payment_type: PaymentType) -> str:
    """Create a Stripe Checkout session for a one-time purchase and return its id."""
    _init_stripe()
    try:
        session = await run_in_threadpool(
            stripe.checkout.Session.create,
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            mode="payment",
            success_url=_success_url(),
            cancel_url=_cancel_url(),
            metadata={
                "userId": user_id,
                "type": PaymentType(payment_type).value,
            },
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe checkout creation failed: {str(e)}")
        raise
    return session.id


def construct_webhook_event(payload: bytes, sig_header: str):
    """Verify a webhook payload against the signing secret and parse it."""
    _init_stripe()
    try:
        return stripe.Webhook.construct_event(
            payload, sig_header, settings.STRIPE_WEBHOOK_SECRET
        )
    except ValueError:
        raise ValueError("Invalid payload")
    except stripe.SignatureVerificationError:
        raise ValueError("Invalid signature")


def payment_from_checkout(session) -> Optional[PaymentRecord]:
    """Build the payment record for a completed checkout session.

    Returns None when the session carries no userId or no payment type.
    Unrecognized types are kept; they never count towards a status.
    """
    metadata = session.get("metadata") or {}
    user_id = metadata.get("userId")
    if not user_id:
        logger.warning(f"Checkout session {session.get('id')} has no userId, skipping")
        return None

    payment_type = metadata.get("type")
    if not payment_type:
        logger.warning(f"Checkout session {session.get('id')} has no payment type, skipping")
        return None
    if payment_type not in {t.value for t in PaymentType}:
        logger.warning(f"Checkout session {session.get('id')} has unknown payment type {payment_type!r}")

    return PaymentRecord(
        user_id=user_id,
        type=payment_type,
        amount=(session.get("amount_total") or 0) / 100,
        external_ref=session.get("id"),
        created_at=utcnow(),
    )
