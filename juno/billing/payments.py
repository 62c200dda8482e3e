"""Credit purchases through Stripe: customers, saved cards, intents and webhook events."""
import json
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from juno.billing.tax import calculate_tax
from juno.connectors import stripe_gateway
from juno.ledger.credits import update_credits
from juno.models import CreditPackage, PaymentMethod, PaymentRecord, StripeCustomer, Tenant

logger = logging.getLogger(__name__)


def get_or_create_stripe_customer(db: Session, tenant: Tenant, email: Optional[str] = None) -> str:
    """Stripe customer id for the tenant, created on first use."""
    existing = db.query(StripeCustomer).filter(StripeCustomer.tenant_id == tenant.id).first()
    if existing:
        return existing.stripe_customer_id

    customer = stripe_gateway.create_customer(email=email, name=tenant.name, tenant_id=tenant.id)
    db.add(StripeCustomer(tenant_id=tenant.id, stripe_customer_id=customer.id))
    db.commit()
    logger.info("Stripe customer %s created for tenant %s", customer.id, tenant.id)
    return customer.id


def purchase_metadata(tenant_id: int, package: CreditPackage, tax, auto_recharge: bool = False) -> dict[str, str]:
    metadata = {
        "tenant_id": str(tenant_id),
        "package_id": str(package.id),
        "credits": str(package.credits),
        "description": f"{package.name} - {package.credits} credits",
    }
    metadata.update(tax.as_metadata())
    if auto_recharge:
        metadata["auto_recharge"] = "true"
    return metadata


def create_credit_payment_intent(
    db: Session,
    tenant: Tenant,
    package: CreditPackage,
    email: Optional[str] = None,
) -> dict[str, Any]:
    """Start a one-off package purchase; credits are granted by the webhook on success."""
    customer_id = get_or_create_stripe_customer(db, tenant, email)
    tax = calculate_tax(package.price_usd_cents)
    metadata = purchase_metadata(tenant.id, package, tax)

    intent = stripe_gateway.create_payment_intent(
        amount_cents=tax.total_cents,
        customer_id=customer_id,
        metadata=metadata,
        description=metadata["description"],
    )

    db.add(PaymentRecord(
        tenant_id=tenant.id,
        stripe_payment_intent_id=intent.id,
        stripe_customer_id=customer_id,
        amount_usd_cents=tax.total_cents,
        subtotal_usd_cents=tax.subtotal_cents,
        tax_amount_usd_cents=tax.tax_cents,
        tax_rate=tax.tax_rate,
        credits_purchased=package.credits,
        status="pending",
        metadata_json=json.dumps(metadata),
    ))
    db.commit()
    logger.info("Payment intent %s created for tenant %s (%d cents)", intent.id, tenant.id, tax.total_cents)

    return {
        "client_secret": intent.client_secret,
        "payment_intent_id": intent.id,
        "amount": tax.total_cents,
        "subtotal": tax.subtotal_cents,
        "tax_amount": tax.tax_cents,
        "tax_rate": tax.tax_rate,
        "tax_name": tax.tax_name,
        "credits": package.credits,
    }


def save_payment_method(db: Session, tenant_id: int, payment_method_id: str) -> Optional[PaymentMethod]:
    """Mirror a Stripe card locally. The tenant's first active card becomes the default."""
    existing = (
        db.query(PaymentMethod)
        .filter(PaymentMethod.stripe_payment_method_id == payment_method_id)
        .first()
    )
    if existing:
        return existing

    pm = stripe_gateway.retrieve_payment_method(payment_method_id)
    card = getattr(pm, "card", None)
    if not card:
        logger.info("Payment method %s is not a card; not saved", payment_method_id)
        return None

    has_active = (
        db.query(PaymentMethod)
        .filter(PaymentMethod.tenant_id == tenant_id, PaymentMethod.is_active == True)
        .count()
    )
    method = PaymentMethod(
        tenant_id=tenant_id,
        stripe_payment_method_id=payment_method_id,
        stripe_customer_id=pm.customer,
        card_brand=card.brand,
        card_last4=card.last4,
        card_exp_month=card.exp_month,
        card_exp_year=card.exp_year,
        is_default=has_active == 0,
        is_active=True,
    )
    db.add(method)
    db.commit()
    db.refresh(method)
    logger.info("Saved card %s for tenant %s", payment_method_id, tenant_id)
    return method


def handle_payment_succeeded(db: Session, intent: dict[str, Any]) -> None:
    metadata = intent.get("metadata") or {}
    record = (
        db.query(PaymentRecord)
        .filter(PaymentRecord.stripe_payment_intent_id == intent["id"])
        .first()
    )
    tenant_id = int(metadata.get("tenant_id") or (record.tenant_id if record else 0))
    credits = int(metadata.get("credits") or (record.credits_purchased if record else 0))
    if not tenant_id or not credits:
        logger.error("Payment intent %s has no tenant or credits metadata", intent["id"])
        return

    if record:
        record.status = "succeeded"
    # Commits the status change together with the ledger entry (idempotent on intent id)
    update_credits(
        db,
        tenant_id,
        credits,
        "purchase",
        metadata.get("description") or f"Purchase of {credits} credits",
        reference_id=intent["id"],
        created_by="stripe",
    )

    payment_method_id = intent.get("payment_method")
    if isinstance(payment_method_id, dict):
        payment_method_id = payment_method_id.get("id")
    if payment_method_id:
        save_payment_method(db, tenant_id, payment_method_id)


def handle_payment_failed(db: Session, intent: dict[str, Any]) -> None:
    record = (
        db.query(PaymentRecord)
        .filter(PaymentRecord.stripe_payment_intent_id == intent["id"])
        .first()
    )
    if record:
        record.status = "failed"
        db.commit()
    logger.info("Payment failed for intent %s", intent["id"])


def handle_payment_method_attached(db: Session, payment_method: dict[str, Any]) -> None:
    customer_id = payment_method.get("customer")
    if not customer_id or not payment_method.get("card"):
        return
    customer = db.query(StripeCustomer).filter(StripeCustomer.stripe_customer_id == customer_id).first()
    if not customer:
        logger.warning("No tenant for Stripe customer %s", customer_id)
        return
    save_payment_method(db, customer.tenant_id, payment_method["id"])


EVENT_HANDLERS = {
    "payment_intent.succeeded": handle_payment_succeeded,
    "payment_intent.payment_failed": handle_payment_failed,
    "payment_method.attached": handle_payment_method_attached,
}


def handle_stripe_event(db: Session, event: dict[str, Any]) -> bool:
    """Dispatch a verified webhook event. Returns False for event types that are only acknowledged."""
    handler = EVENT_HANDLERS.get(event.get("type"))
    if handler is None:
        logger.info("Unhandled Stripe event type: %s", event.get("type"))
        return False
    handler(db, event["data"]["object"])
    return True
