"""
Credit ledger: the only code path that changes a tenant's credit balance.

Every change locks the tenant's balance row, applies a signed amount, and
appends a CreditTransaction carrying the resulting balance, all in one
database transaction. On any failure the session is rolled back and nothing
is applied.
"""
import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from juno.errors import LedgerError, InsufficientCreditsError
from juno.models import CreditBalance, CreditTransaction

logger = logging.getLogger(__name__)

# Types that always reduce the balance, whatever sign the caller passes
DEBIT_TYPES = frozenset({
    "usage", "call", "sms", "email", "phone_number_setup", "monthly_billing", "credit_penalty",
})
# Types that always increase it
CREDIT_TYPES = frozenset({"purchase", "credit_bonus", "credit_refund"})
# Types whose sign is taken from the caller
SIGNED_TYPES = frozenset({"credit_adjustment"})

TRANSACTION_TYPES = DEBIT_TYPES | CREDIT_TYPES | SIGNED_TYPES


def signed_amount(amount: int, transaction_type: str) -> int:
    """Normalize the sign of amount for the given transaction type."""
    if transaction_type not in TRANSACTION_TYPES:
        raise LedgerError(f"Unknown transaction type: {transaction_type}")
    amount = int(amount)
    if amount == 0:
        raise LedgerError("Amount must be non-zero")
    if transaction_type in DEBIT_TYPES:
        return -abs(amount)
    if transaction_type in CREDIT_TYPES:
        return abs(amount)
    return amount


def _lock_balance(db: Session, tenant_id: int) -> CreditBalance:
    """SELECT ... FOR UPDATE the tenant balance row, creating it at zero if absent."""
    row = (
        db.query(CreditBalance)
        .filter(CreditBalance.tenant_id == tenant_id)
        .with_for_update()
        .first()
    )
    if row is None:
        row = CreditBalance(tenant_id=tenant_id, balance=0)
        db.add(row)
        db.flush()
    return row


def _existing_purchase(db: Session, tenant_id: int, reference_id: str) -> Optional[CreditTransaction]:
    return (
        db.query(CreditTransaction)
        .filter(
            CreditTransaction.tenant_id == tenant_id,
            CreditTransaction.transaction_type == "purchase",
            CreditTransaction.reference_id == reference_id,
        )
        .first()
    )


def update_credits(
    db: Session,
    tenant_id: int,
    amount: int,
    transaction_type: str,
    description: str,
    reference_id: Optional[str] = None,
    created_by: Optional[str] = None,
) -> CreditTransaction:
    """
    Apply a credit change atomically and return the ledger entry.

    Purchases are idempotent on reference_id: repeating one returns the
    existing entry and leaves the balance untouched. Pending changes already
    made on the session by the caller are committed together with the entry.

    Raises LedgerError for malformed calls and InsufficientCreditsError when
    the balance would go negative.
    """
    try:
        delta = signed_amount(amount, transaction_type)

        balance_row = _lock_balance(db, tenant_id)
        if transaction_type == "purchase" and reference_id:
            existing = _existing_purchase(db, tenant_id, reference_id)
            if existing is not None:
                logger.info(
                    "Purchase %s already credited for tenant %s; skipping", reference_id, tenant_id
                )
                db.commit()
                return existing

        new_balance = balance_row.balance + delta
        if new_balance < 0:
            raise InsufficientCreditsError(balance_row.balance, delta)

        balance_row.balance = new_balance
        entry = CreditTransaction(
            tenant_id=tenant_id,
            amount=delta,
            balance_after=new_balance,
            transaction_type=transaction_type,
            description=description,
            reference_id=reference_id,
            created_by=created_by,
        )
        db.add(entry)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(entry)
    logger.info(
        "Ledger tenant=%s type=%s amount=%+d balance=%d",
        tenant_id, transaction_type, delta, new_balance,
    )
    return entry


def get_balance(db: Session, tenant_id: int) -> int:
    """Current balance; 0 for a tenant without a balance row."""
    row = db.query(CreditBalance).filter(CreditBalance.tenant_id == tenant_id).first()
    return row.balance if row else 0


def recent_transactions(db: Session, tenant_id: int, limit: int = 10) -> list[CreditTransaction]:
    return (
        db.query(CreditTransaction)
        .filter(CreditTransaction.tenant_id == tenant_id)
        .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
        .limit(limit)
        .all()
    )


def reconcile(db: Session, tenant_id: int) -> int:
    """Signed sum of all ledger entries; equals get_balance for a consistent ledger."""
    total = (
        db.query(func.coalesce(func.sum(CreditTransaction.amount), 0))
        .filter(CreditTransaction.tenant_id == tenant_id)
        .scalar()
    )
    return int(total or 0)
