"""
Auto-recharge: buy a credit package off-session when a tenant's balance drops
below its configured minimum.

Triggered by the cron sweep, by the tenant's "trigger now" action, and after
debits. Concurrent triggers for one tenant are serialized by the setting row
lock and the cooldown stamp, which is committed before the card is charged;
the Stripe idempotency key and the ledger's reference_id check make a repeated
charge or credit a no-op.
"""
import json
import logging
from dataclasses import dataclass, asdict, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from juno.alerts.email import send_low_balance_email
from juno.billing.payments import purchase_metadata
from juno.billing.tax import calculate_tax
from juno.config import settings
from juno.connectors import stripe_gateway
from juno.errors import AutoRechargeError, JunoError
from juno.ledger.credits import get_balance, update_credits
from juno.models import AutoRechargeSetting, CreditPackage, PaymentMethod, PaymentRecord, Role, Tenant, UserAccount

logger = logging.getLogger(__name__)


@dataclass
class RechargeOutcome:
    status: str  # disabled, not_needed, cooldown, succeeded, pending
    payment_intent_id: Optional[str] = None
    credits_added: int = 0
    subtotal_cents: int = 0
    tax_cents: int = 0
    total_cents: int = 0
    balance: Optional[int] = None

    @property
    def charged(self) -> bool:
        return self.payment_intent_id is not None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SweepResult:
    processed: int = 0
    recharged: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def in_cooldown(setting: AutoRechargeSetting, now: datetime) -> bool:
    if setting.last_triggered_at is None:
        return False
    window = timedelta(minutes=settings.auto_recharge_cooldown_minutes)
    return _as_utc(now) - _as_utc(setting.last_triggered_at) < window


def needs_recharge(balance: int, setting: Optional[AutoRechargeSetting], now: Optional[datetime] = None) -> bool:
    """Enabled, strictly below the minimum, and outside the cooldown window."""
    if setting is None or not setting.is_enabled:
        return False
    if balance >= setting.minimum_balance:
        return False
    return not in_cooldown(setting, now or datetime.now(timezone.utc))


def select_package(db: Session, recharge_amount: int) -> Optional[CreditPackage]:
    """Smallest active package that covers recharge_amount."""
    return (
        db.query(CreditPackage)
        .filter(CreditPackage.is_active == True, CreditPackage.credits >= recharge_amount)
        .order_by(CreditPackage.credits.asc())
        .first()
    )


def _usable_payment_method(db: Session, setting: AutoRechargeSetting) -> PaymentMethod:
    method = None
    if setting.payment_method_id:
        method = (
            db.query(PaymentMethod)
            .filter(
                PaymentMethod.id == setting.payment_method_id,
                PaymentMethod.tenant_id == setting.tenant_id,
                PaymentMethod.is_active == True,
            )
            .first()
        )
    if method is None:
        raise AutoRechargeError("No valid payment method configured for auto-recharge")
    return method


def trigger_auto_recharge(
    db: Session,
    tenant_id: int,
    triggered_by: str = "system",
    now: Optional[datetime] = None,
) -> RechargeOutcome:
    """
    Run one auto-recharge attempt for a tenant.

    Returns an outcome without charging when the setting is disabled, the
    balance is at or above the minimum, or a recent attempt is in cooldown.
    Raises AutoRechargeError when enabled but unusable (no card, no package)
    and PaymentDeclinedError / PaymentProviderError from the charge.
    """
    now = now or datetime.now(timezone.utc)
    setting = (
        db.query(AutoRechargeSetting)
        .filter(AutoRechargeSetting.tenant_id == tenant_id)
        .with_for_update()
        .first()
    )
    balance = get_balance(db, tenant_id)

    if setting is None or not setting.is_enabled:
        db.rollback()
        return RechargeOutcome(status="disabled", balance=balance)
    if balance >= setting.minimum_balance:
        db.rollback()
        return RechargeOutcome(status="not_needed", balance=balance)
    if in_cooldown(setting, now):
        db.rollback()
        logger.info("Auto-recharge for tenant %s skipped: in cooldown", tenant_id)
        return RechargeOutcome(status="cooldown", balance=balance)

    try:
        method = _usable_payment_method(db, setting)
        package = select_package(db, setting.recharge_amount)
        if package is None:
            raise AutoRechargeError(
                f"No active credit package covers {setting.recharge_amount} credits"
            )
    except AutoRechargeError:
        db.rollback()
        raise

    # Claim this attempt before charging
    setting.last_triggered_at = now
    db.commit()

    tax = calculate_tax(package.price_usd_cents)
    metadata = purchase_metadata(tenant_id, package, tax, auto_recharge=True)
    metadata["triggered_by"] = triggered_by
    metadata["description"] = f"Auto-recharge: {package.name} - {package.credits} credits"
    idempotency_key = f"auto-recharge:{tenant_id}:{int(now.timestamp())}"

    logger.info(
        "Auto-recharge tenant=%s balance=%d minimum=%d package=%s total_cents=%d by=%s",
        tenant_id, balance, setting.minimum_balance, package.id, tax.total_cents, triggered_by,
    )
    intent = stripe_gateway.create_payment_intent(
        amount_cents=tax.total_cents,
        customer_id=method.stripe_customer_id,
        metadata=metadata,
        description=metadata["description"],
        payment_method_id=method.stripe_payment_method_id,
        off_session=True,
        idempotency_key=idempotency_key,
    )

    succeeded = intent.status == "succeeded"
    db.add(PaymentRecord(
        tenant_id=tenant_id,
        stripe_payment_intent_id=intent.id,
        stripe_customer_id=method.stripe_customer_id,
        payment_method_id=method.id,
        amount_usd_cents=tax.total_cents,
        subtotal_usd_cents=tax.subtotal_cents,
        tax_amount_usd_cents=tax.tax_cents,
        tax_rate=tax.tax_rate,
        credits_purchased=package.credits,
        status="succeeded" if succeeded else "pending",
        is_auto_recharge=True,
        metadata_json=json.dumps(metadata),
    ))

    credits_added = 0
    if succeeded:
        update_credits(
            db,
            tenant_id,
            package.credits,
            "purchase",
            metadata["description"],
            reference_id=intent.id,
            created_by=triggered_by,
        )
        credits_added = package.credits
    else:
        db.commit()

    return RechargeOutcome(
        status="succeeded" if succeeded else "pending",
        payment_intent_id=intent.id,
        credits_added=credits_added,
        subtotal_cents=tax.subtotal_cents,
        tax_cents=tax.tax_cents,
        total_cents=tax.total_cents,
        balance=get_balance(db, tenant_id),
    )


def check_after_debit(db: Session, tenant_id: int) -> Optional[RechargeOutcome]:
    """Best-effort recharge check after credits are spent; failures are logged only."""
    try:
        return trigger_auto_recharge(db, tenant_id, triggered_by="balance_check")
    except JunoError as e:
        logger.warning("Auto-recharge after debit failed for tenant %s: %s", tenant_id, e)
        return None


def _notify_admins(db: Session, tenant_id: int, reason: str) -> None:
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    setting = db.query(AutoRechargeSetting).filter(AutoRechargeSetting.tenant_id == tenant_id).first()
    if not tenant or not setting:
        return
    admins = (
        db.query(UserAccount)
        .join(Role, UserAccount.role_id == Role.id)
        .filter(UserAccount.tenant_id == tenant_id, Role.role_name == "admin")
        .all()
    )
    balance = get_balance(db, tenant_id)
    for admin in admins:
        send_low_balance_email(admin.email, tenant.name, balance, setting.minimum_balance, reason)


def run_auto_recharge_sweep(db: Session, now: Optional[datetime] = None) -> SweepResult:
    """Check every enabled tenant once; a failing tenant never stops the sweep."""
    now = now or datetime.now(timezone.utc)
    result = SweepResult()
    tenant_ids = [
        row.tenant_id
        for row in db.query(AutoRechargeSetting.tenant_id).filter(AutoRechargeSetting.is_enabled == True).all()
    ]
    logger.info("Auto-recharge sweep: %d enabled tenants", len(tenant_ids))

    for tenant_id in tenant_ids:
        result.processed += 1
        try:
            outcome = trigger_auto_recharge(db, tenant_id, triggered_by="cron", now=now)
        except JunoError as e:
            db.rollback()
            result.failed += 1
            result.errors.append(f"Tenant {tenant_id}: {e}")
            logger.error("Auto-recharge failed for tenant %s: %s", tenant_id, e)
            _notify_admins(db, tenant_id, str(e))
            continue
        except Exception as e:
            db.rollback()
            result.failed += 1
            result.errors.append(f"Tenant {tenant_id}: {e}")
            logger.exception("Unexpected auto-recharge error for tenant %s", tenant_id)
            continue

        if outcome.charged:
            result.recharged += 1
        else:
            result.skipped += 1

    logger.info(
        "Auto-recharge sweep done: processed=%d recharged=%d skipped=%d failed=%d",
        result.processed, result.recharged, result.skipped, result.failed,
    )
    return result
