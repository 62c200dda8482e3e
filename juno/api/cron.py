"""Scheduler-triggered jobs, authenticated with the cron secret."""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from juno.api.auth import require_cron
from juno.billing.auto_recharge import run_auto_recharge_sweep
from juno.billing.monthly import run_monthly_billing
from juno.database import get_db

router = APIRouter(prefix="/cron", dependencies=[Depends(require_cron)])
logger = logging.getLogger(__name__)


@router.get("/auto-recharge-check")
def auto_recharge_check(db: Session = Depends(get_db)):
    """Recharge every enabled tenant whose balance is below its minimum."""
    result = run_auto_recharge_sweep(db)
    return {
        "success": True,
        **result.to_dict(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/monthly-billing")
def monthly_billing(db: Session = Depends(get_db)):
    """Charge due phone numbers; numbers the tenant cannot pay for are suspended."""
    result = run_monthly_billing(db)
    return {
        "success": True,
        **result.to_dict(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
