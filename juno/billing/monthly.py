"""
Monthly billing for phone numbers.

Each number carries its own next_billing_date. When it falls due, the monthly
cost is debited from the tenant's credits and the date moves forward one
billing period. A tenant that cannot pay has the number suspended and retried
after a shorter interval; a later successful charge reactivates it.
"""
import logging
from dataclasses import dataclass, asdict, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from juno.alerts.email import send_number_suspended_email
from juno.config import settings
from juno.errors import InsufficientCreditsError
from juno.ledger.credits import update_credits
from juno.models import PhoneNumber, Role, Tenant, UserAccount

logger = logging.getLogger(__name__)

BILLABLE_STATUSES = ("active", "suspended")


@dataclass
class MonthlyBillingResult:
    processed: int = 0
    suspended: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def is_due(number: PhoneNumber, now: datetime) -> bool:
    if number.status not in BILLABLE_STATUSES or number.next_billing_date is None:
        return False
    return _as_utc(number.next_billing_date) <= _as_utc(now)


def due_phone_numbers(db: Session, now: datetime) -> list[int]:
    rows = (
        db.query(PhoneNumber.id)
        .filter(
            PhoneNumber.status.in_(BILLABLE_STATUSES),
            PhoneNumber.next_billing_date != None,
            PhoneNumber.next_billing_date <= now,
        )
        .order_by(PhoneNumber.next_billing_date.asc(), PhoneNumber.id.asc())
        .all()
    )
    return [row.id for row in rows]


def _notify_admins(db: Session, number: PhoneNumber, balance: int) -> None:
    tenant = db.query(Tenant).filter(Tenant.id == number.tenant_id).first()
    if not tenant:
        return
    admins = (
        db.query(UserAccount)
        .join(Role, UserAccount.role_id == Role.id)
        .filter(UserAccount.tenant_id == number.tenant_id, Role.role_name == "admin")
        .all()
    )
    for admin in admins:
        sent, error = send_number_suspended_email(
            admin.email, tenant.name, number.phone_number, balance, number.monthly_cost
        )
        if not sent:
            logger.warning("Suspension notice to %s not sent: %s", admin.email, error)


def bill_phone_number(db: Session, number_id: int, now: Optional[datetime] = None) -> str:
    """
    Charge one number if it is due. Returns "billed", "suspended" or "skipped".

    The row is locked and re-checked so that overlapping runs charge it once.
    """
    now = now or datetime.now(timezone.utc)
    number = db.query(PhoneNumber).filter(PhoneNumber.id == number_id).with_for_update().first()
    if number is None or not is_due(number, now):
        db.rollback()
        return "skipped"

    # Committed together with the ledger entry
    number.status = "active"
    number.next_billing_date = now + timedelta(days=settings.billing_period_days)
    if not number.monthly_cost:
        db.commit()
        return "billed"

    try:
        update_credits(
            db,
            number.tenant_id,
            number.monthly_cost,
            "monthly_billing",
            f"Monthly billing: {number.phone_number}",
            reference_id=f"phone_number:{number.id}",
            created_by="cron",
        )
    except InsufficientCreditsError as e:
        number.status = "suspended"
        number.next_billing_date = now + timedelta(days=settings.suspended_retry_days)
        db.commit()
        logger.warning(
            "Suspended %s for tenant %s: balance %d below monthly cost %d",
            number.phone_number, number.tenant_id, e.balance, number.monthly_cost,
        )
        _notify_admins(db, number, e.balance)
        return "suspended"

    logger.info("Billed %s for tenant %s: %d credits", number.phone_number, number.tenant_id, number.monthly_cost)
    return "billed"


def run_monthly_billing(db: Session, now: Optional[datetime] = None) -> MonthlyBillingResult:
    """Bill every due number; a failing number never stops the run."""
    now = now or datetime.now(timezone.utc)
    result = MonthlyBillingResult()
    number_ids = due_phone_numbers(db, now)
    logger.info("Monthly billing: %d phone numbers due", len(number_ids))

    for number_id in number_ids:
        try:
            outcome = bill_phone_number(db, number_id, now)
        except Exception as e:
            db.rollback()
            result.failed += 1
            result.errors.append(f"Phone number {number_id}: {e}")
            logger.exception("Monthly billing failed for phone number %s", number_id)
            continue

        if outcome == "billed":
            result.processed += 1
        elif outcome == "suspended":
            result.suspended += 1
        else:
            result.skipped += 1

    logger.info(
        "Monthly billing done: processed=%d suspended=%d skipped=%d failed=%d",
        result.processed, result.suspended, result.skipped, result.failed,
    )
    return result
