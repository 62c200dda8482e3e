"""Credit balance, ledger entries and purchasable packages."""
import logging
import math

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from juno.api.auth import get_current_tenant, require_permission
from juno.billing.auto_recharge import check_after_debit
from juno.database import get_db
from juno.errors import LedgerError
from juno.ledger.credits import get_balance, recent_transactions, update_credits
from juno.models import CreditPackage, Tenant, UserAccount
from juno.schemas import CreditPackageOut, CreditsOut, CreditTransactionOut, CreditUpdate, CreditUpdateResponse

router = APIRouter()
logger = logging.getLogger(__name__)

USAGE_TYPES = ("usage", "call", "sms", "email")


@router.get("/credits", response_model=CreditsOut)
def get_credits(
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("credits.read")),
    db: Session = Depends(get_db),
):
    """Current balance and the 10 most recent transactions."""
    return CreditsOut(
        balance=get_balance(db, tenant.id),
        transactions=[CreditTransactionOut.model_validate(t) for t in recent_transactions(db, tenant.id, 10)],
    )


@router.post("/credits", response_model=CreditUpdateResponse)
def post_credits(
    body: CreditUpdate,
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("credits.use")),
    db: Session = Depends(get_db),
):
    """Record credit usage for the caller's tenant. Credits are only added by purchases and super-admins."""
    if body.transaction_type not in USAGE_TYPES:
        raise HTTPException(400, f"transaction_type must be one of: {', '.join(sorted(USAGE_TYPES))}")
    amount = math.floor(body.amount)
    try:
        entry = update_credits(
            db,
            tenant.id,
            amount,
            body.transaction_type,
            body.description,
            reference_id=body.reference_id,
            created_by=str(user.id),
        )
    except LedgerError as e:
        raise HTTPException(400, str(e))

    if entry.amount < 0:
        check_after_debit(db, tenant.id)

    return CreditUpdateResponse(success=True, balance=get_balance(db, tenant.id), transaction_id=entry.id)


@router.get("/credit-packages", response_model=list[CreditPackageOut])
def list_credit_packages(db: Session = Depends(get_db)):
    return (
        db.query(CreditPackage)
        .filter(CreditPackage.is_active == True)
        .order_by(CreditPackage.credits.asc())
        .all()
    )
