"""Stripe-backed billing: saved cards, package purchases and auto-recharge settings."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.orm import Session

from juno.api.auth import get_current_tenant, require_permission
from juno.billing.auto_recharge import trigger_auto_recharge
from juno.billing.payments import create_credit_payment_intent, get_or_create_stripe_customer
from juno.config import settings
from juno.connectors import stripe_gateway
from juno.database import get_db
from juno.errors import AutoRechargeError, PaymentDeclinedError, PaymentProviderError
from juno.models import AutoRechargeSetting, CreditPackage, PaymentMethod, Tenant, UserAccount
from juno.schemas import (
    AutoRechargeOut,
    AutoRechargeUpdate,
    PaymentIntentCreate,
    PaymentMethodAction,
    PaymentMethodOut,
)

router = APIRouter(prefix="/stripe")
logger = logging.getLogger(__name__)

PaymentMethodIdPath = Path(..., gt=0, description="Payment method ID (positive integer)")


def require_stripe() -> None:
    if not settings.stripe_enabled:
        raise HTTPException(503, "Payments are not configured")


def _tenant_card(db: Session, tenant_id: int, payment_method_id: int) -> PaymentMethod:
    method = (
        db.query(PaymentMethod)
        .filter(
            PaymentMethod.id == payment_method_id,
            PaymentMethod.tenant_id == tenant_id,
            PaymentMethod.is_active == True,
        )
        .first()
    )
    if not method:
        raise HTTPException(404, "Payment method not found")
    return method


@router.get("/payment-methods", response_model=list[PaymentMethodOut], dependencies=[Depends(require_stripe)])
def list_payment_methods(
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("settings.billing")),
    db: Session = Depends(get_db),
):
    return (
        db.query(PaymentMethod)
        .filter(PaymentMethod.tenant_id == tenant.id, PaymentMethod.is_active == True)
        .order_by(PaymentMethod.created_at.desc(), PaymentMethod.id.desc())
        .all()
    )


@router.post("/payment-methods", dependencies=[Depends(require_stripe)])
def payment_method_action(
    body: PaymentMethodAction,
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("settings.billing")),
    db: Session = Depends(get_db),
):
    """set_default: make one card the default. create_setup_intent: start saving a new card."""
    if body.action == "set_default":
        if not body.payment_method_id:
            raise HTTPException(400, "payment_method_id is required")
        method = _tenant_card(db, tenant.id, body.payment_method_id)
        db.query(PaymentMethod).filter(PaymentMethod.tenant_id == tenant.id).update(
            {PaymentMethod.is_default: False}, synchronize_session=False
        )
        method.is_default = True
        db.commit()
        return {"success": True}

    if body.action == "create_setup_intent":
        try:
            customer_id = get_or_create_stripe_customer(db, tenant, user.email)
            intent = stripe_gateway.create_setup_intent(customer_id)
        except PaymentProviderError as e:
            raise HTTPException(502, str(e))
        return {"client_secret": intent.client_secret, "setup_intent_id": intent.id}

    raise HTTPException(400, "Invalid action")


@router.delete("/payment-methods/{payment_method_id}", dependencies=[Depends(require_stripe)])
def delete_payment_method(
    payment_method_id: int = PaymentMethodIdPath,
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("settings.billing")),
    db: Session = Depends(get_db),
):
    method = _tenant_card(db, tenant.id, payment_method_id)
    try:
        stripe_gateway.detach_payment_method(method.stripe_payment_method_id)
    except PaymentProviderError as e:
        raise HTTPException(502, str(e))
    method.is_active = False
    method.is_default = False
    db.commit()
    logger.info("Payment method %s removed for tenant %s", method.id, tenant.id)
    return {"success": True}


@router.post("/create-payment-intent", dependencies=[Depends(require_stripe)])
def create_payment_intent(
    body: PaymentIntentCreate,
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("credits.purchase")),
    db: Session = Depends(get_db),
):
    """Price + tax for a credit package; the client confirms with the returned secret."""
    package = (
        db.query(CreditPackage)
        .filter(CreditPackage.id == body.package_id, CreditPackage.is_active == True)
        .first()
    )
    if not package:
        raise HTTPException(404, "Credit package not found")
    try:
        return create_credit_payment_intent(db, tenant, package, user.email)
    except PaymentProviderError as e:
        raise HTTPException(502, str(e))


@router.get("/auto-recharge", dependencies=[Depends(require_stripe)])
def get_auto_recharge(
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("settings.billing")),
    db: Session = Depends(get_db),
):
    setting = db.query(AutoRechargeSetting).filter(AutoRechargeSetting.tenant_id == tenant.id).first()
    return {"settings": AutoRechargeOut.model_validate(setting) if setting else None}


@router.post("/auto-recharge", dependencies=[Depends(require_stripe)])
def update_auto_recharge(
    body: AutoRechargeUpdate,
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("settings.billing")),
    db: Session = Depends(get_db),
):
    """Save auto-recharge settings, or with trigger_now run a recharge check immediately."""
    if body.trigger_now:
        try:
            outcome = trigger_auto_recharge(db, tenant.id, triggered_by=f"user:{user.id}")
        except (AutoRechargeError, PaymentDeclinedError) as e:
            raise HTTPException(400, str(e))
        except PaymentProviderError as e:
            raise HTTPException(502, str(e))
        return {"success": True, "result": outcome.to_dict()}

    if body.is_enabled and (
        body.minimum_balance is None or body.recharge_amount is None or body.payment_method_id is None
    ):
        raise HTTPException(400, "Minimum balance, recharge amount, and payment method are required when enabled")
    if body.payment_method_id is not None:
        _tenant_card(db, tenant.id, body.payment_method_id)

    setting = db.query(AutoRechargeSetting).filter(AutoRechargeSetting.tenant_id == tenant.id).first()
    if setting is None:
        setting = AutoRechargeSetting(tenant_id=tenant.id)
        db.add(setting)
    setting.is_enabled = body.is_enabled
    setting.minimum_balance = (
        body.minimum_balance if body.minimum_balance is not None
        else setting.minimum_balance or settings.auto_recharge_default_minimum
    )
    setting.recharge_amount = (
        body.recharge_amount if body.recharge_amount is not None
        else setting.recharge_amount or settings.auto_recharge_default_amount
    )
    if body.payment_method_id is not None:
        setting.payment_method_id = body.payment_method_id
    db.commit()
    db.refresh(setting)
    logger.info(
        "Auto-recharge for tenant %s: enabled=%s minimum=%d amount=%d",
        tenant.id, setting.is_enabled, setting.minimum_balance, setting.recharge_amount,
    )
    return {"success": True, "settings": AutoRechargeOut.model_validate(setting)}
