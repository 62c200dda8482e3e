"""Stripe connector: customers, setup/payment intents, saved cards, webhook verification."""
import logging
from typing import Any, Optional

import stripe

from juno.config import settings
from juno.errors import PaymentDeclinedError, PaymentProviderError

logger = logging.getLogger(__name__)


def _client():
    if not settings.stripe_enabled:
        raise PaymentProviderError("Stripe is not configured")
    stripe.api_key = settings.stripe_secret_key
    return stripe


def create_customer(email: Optional[str], name: str, tenant_id: int):
    """Create a Stripe customer tagged with the tenant id."""
    client = _client()
    try:
        return client.Customer.create(
            email=email,
            name=name,
            metadata={"tenant_id": str(tenant_id)},
        )
    except stripe.StripeError as e:
        logger.error("Stripe customer creation failed for tenant %s: %s", tenant_id, e)
        raise PaymentProviderError(str(e)) from e


def create_setup_intent(customer_id: str):
    """SetupIntent for saving a card usable off-session."""
    client = _client()
    try:
        return client.SetupIntent.create(
            customer=customer_id,
            payment_method_types=["card"],
            usage="off_session",
        )
    except stripe.StripeError as e:
        raise PaymentProviderError(str(e)) from e


def create_payment_intent(
    amount_cents: int,
    customer_id: str,
    metadata: dict[str, str],
    description: str,
    payment_method_id: Optional[str] = None,
    off_session: bool = False,
    idempotency_key: Optional[str] = None,
):
    """
    Create a PaymentIntent. With off_session and a payment method the charge is
    confirmed immediately against the saved card.

    Raises PaymentDeclinedError on card errors, PaymentProviderError otherwise.
    """
    client = _client()
    params: dict[str, Any] = {
        "amount": amount_cents,
        "currency": settings.currency,
        "customer": customer_id,
        "metadata": metadata,
        "description": description,
    }
    if payment_method_id:
        params["payment_method"] = payment_method_id
    if off_session:
        params["off_session"] = True
        params["confirm"] = True
    else:
        params["automatic_payment_methods"] = {"enabled": True}
        params["setup_future_usage"] = "off_session"
    if idempotency_key:
        params["idempotency_key"] = idempotency_key
    try:
        return client.PaymentIntent.create(**params)
    except stripe.CardError as e:
        logger.warning("Card declined for customer %s: %s", customer_id, e.user_message or e)
        raise PaymentDeclinedError(e.user_message or str(e)) from e
    except stripe.StripeError as e:
        logger.error("Stripe payment intent failed for customer %s: %s", customer_id, e)
        raise PaymentProviderError(str(e)) from e


def retrieve_payment_method(payment_method_id: str):
    client = _client()
    try:
        return client.PaymentMethod.retrieve(payment_method_id)
    except stripe.StripeError as e:
        raise PaymentProviderError(str(e)) from e


def detach_payment_method(payment_method_id: str):
    client = _client()
    try:
        return client.PaymentMethod.detach(payment_method_id)
    except stripe.StripeError as e:
        raise PaymentProviderError(str(e)) from e


def parse_webhook(payload: bytes, signature: Optional[str]) -> dict[str, Any]:
    """
    Verify the Stripe-Signature header and return the decoded event.

    Raises ValueError when the signature or payload is invalid.
    """
    if not settings.stripe_webhook_secret:
        raise PaymentProviderError("Stripe webhook secret is not configured")
    if not signature:
        raise ValueError("Missing Stripe-Signature header")
    try:
        event = stripe.Webhook.construct_event(payload, signature, settings.stripe_webhook_secret)
    except stripe.SignatureVerificationError as e:
        raise ValueError(f"Invalid signature: {e}") from e
    return event.to_dict()
