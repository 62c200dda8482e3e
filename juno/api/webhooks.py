"""Stripe webhook receiver."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from juno.billing.payments import handle_stripe_event
from juno.config import settings
from juno.connectors import stripe_gateway
from juno.database import get_db

router = APIRouter()
logger = logging.getLogger(__name__)


async def raw_body(request: Request) -> bytes:
    """Exact request bytes; the signature is computed over them."""
    return await request.body()


@router.post("/stripe/webhooks")
def stripe_webhook(
    request: Request,
    payload: bytes = Depends(raw_body),
    db: Session = Depends(get_db),
):
    """Verify the signature, then apply the event. Errors return 500 so Stripe retries."""
    if not settings.stripe_enabled or not settings.stripe_webhook_secret:
        raise HTTPException(503, "Payments are not configured")

    try:
        event = stripe_gateway.parse_webhook(payload, request.headers.get("stripe-signature"))
    except ValueError as e:
        logger.warning("Stripe webhook rejected: %s", e)
        raise HTTPException(400, "Invalid signature")

    try:
        handle_stripe_event(db, event)
    except Exception:
        db.rollback()
        logger.exception("Stripe webhook processing failed for event %s", event.get("id"))
        raise HTTPException(500, "Webhook processing failed")
    return {"received": True}
