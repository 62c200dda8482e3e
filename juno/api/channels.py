"""Phone numbers and voice agents: buying, registering and listing a tenant's channels."""
import logging
from datetime import datetime, timedelta, timezone

import requests
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from juno.api.auth import get_current_tenant, require_permission
from juno.billing.auto_recharge import check_after_debit
from juno.config import settings
from juno.connectors import twilio, vapi
from juno.database import get_db
from juno.errors import InsufficientCreditsError, ProvisioningError
from juno.ledger.credits import get_balance, update_credits
from juno.models import PhoneNumber, Tenant, UserAccount, VoiceAgent
from juno.schemas import (
    PhoneNumberCreate,
    PhoneNumberOut,
    PhoneNumberPurchase,
    VoiceAgentCreate,
    VoiceAgentOut,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _release_quietly(tenant: Tenant, twilio_sid: str, vapi_phone_number_id) -> None:
    """Give a just-bought number back to the vendors; failures are logged only."""
    if vapi_phone_number_id:
        try:
            vapi.delete_phone_number(vapi_phone_number_id, tenant.vapi_org_id)
        except requests.RequestException as e:
            logger.error("Could not remove Vapi number %s: %s", vapi_phone_number_id, e)
    try:
        twilio.release_number(tenant.twilio_subaccount_sid, twilio_sid)
    except requests.RequestException as e:
        logger.error("Could not release Twilio number %s for tenant %s: %s", twilio_sid, tenant.id, e)


@router.get("/phone-numbers", response_model=list[PhoneNumberOut])
def list_phone_numbers(
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("channels.read")),
    db: Session = Depends(get_db),
):
    return (
        db.query(PhoneNumber)
        .filter(PhoneNumber.tenant_id == tenant.id)
        .order_by(PhoneNumber.created_at.desc(), PhoneNumber.id.desc())
        .all()
    )


@router.post("/phone-numbers", response_model=PhoneNumberPurchase, status_code=201)
def purchase_phone_number(
    body: PhoneNumberCreate,
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("channels.manage")),
    db: Session = Depends(get_db),
):
    """
    Buy a number into the tenant's Twilio subaccount and pay its setup cost.

    The number is imported into the tenant's Vapi organization when one is
    linked; a failed import leaves the number usable for SMS. Monthly charges
    start one billing period after purchase.
    """
    if not settings.twilio_enabled:
        raise HTTPException(503, "Telephony is not configured")
    if not tenant.twilio_subaccount_sid:
        raise HTTPException(400, "Telephony is not provisioned for this organization")

    setup_cost = settings.phone_number_setup_credits
    balance = get_balance(db, tenant.id)
    if balance < setup_cost:
        raise HTTPException(402, f"Insufficient credits. Need {setup_cost} credits for setup.")

    try:
        purchased = twilio.purchase_number(tenant.twilio_subaccount_sid, body.phone_number)
    except (requests.RequestException, ProvisioningError) as e:
        logger.error("Phone number purchase failed for tenant %s: %s", tenant.id, e)
        raise HTTPException(502, "Failed to purchase phone number")

    vapi_phone_number_id = None
    if settings.vapi_enabled and tenant.vapi_org_id:
        try:
            imported = vapi.import_phone_number(
                purchased["phone_number"], tenant.twilio_subaccount_sid, tenant.vapi_org_id
            )
            vapi_phone_number_id = imported["id"]
        except (requests.RequestException, ProvisioningError) as e:
            logger.warning("Vapi import of %s failed for tenant %s: %s", purchased["phone_number"], tenant.id, e)

    number = PhoneNumber(
        tenant_id=tenant.id,
        phone_number=purchased["phone_number"],
        twilio_sid=purchased["sid"],
        vapi_phone_number_id=vapi_phone_number_id,
        status="active",
        monthly_cost=settings.phone_number_monthly_credits,
        setup_cost=setup_cost,
        next_billing_date=datetime.now(timezone.utc) + timedelta(days=settings.billing_period_days),
    )
    db.add(number)
    db.flush()

    if setup_cost > 0:
        try:
            update_credits(
                db,
                tenant.id,
                setup_cost,
                "phone_number_setup",
                f"Phone number setup: {number.phone_number}",
                reference_id=f"phone_number:{number.id}",
                created_by=str(user.id),
            )
        except InsufficientCreditsError as e:
            # Balance was spent elsewhere since the check above
            db.rollback()
            _release_quietly(tenant, purchased["sid"], vapi_phone_number_id)
            raise HTTPException(402, str(e))
        check_after_debit(db, tenant.id)
    else:
        db.commit()

    db.refresh(number)
    logger.info("Phone number %s purchased for tenant %s by user %s", number.phone_number, tenant.id, user.id)
    return PhoneNumberPurchase(
        phone_number=PhoneNumberOut.model_validate(number),
        credits_deducted=setup_cost,
        vapi_integrated=vapi_phone_number_id is not None,
    )


@router.get("/voice-agents", response_model=list[VoiceAgentOut])
def list_voice_agents(
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("channels.read")),
    db: Session = Depends(get_db),
):
    return (
        db.query(VoiceAgent)
        .filter(VoiceAgent.tenant_id == tenant.id)
        .order_by(VoiceAgent.created_at.desc(), VoiceAgent.id.desc())
        .all()
    )


@router.post("/voice-agents", response_model=VoiceAgentOut, status_code=201)
def create_voice_agent(
    body: VoiceAgentCreate,
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("channels.manage")),
    db: Session = Depends(get_db),
):
    """Create the agent locally and, when the tenant has a Vapi organization, as a Vapi assistant."""
    if body.phone_number_id is not None:
        owned = (
            db.query(PhoneNumber)
            .filter(PhoneNumber.id == body.phone_number_id, PhoneNumber.tenant_id == tenant.id)
            .first()
        )
        if not owned:
            raise HTTPException(404, "Phone number not found")

    vapi_agent_id = None
    if settings.vapi_enabled and tenant.vapi_org_id:
        try:
            vapi_agent_id = vapi.create_assistant(body.name, body.voice, body.script, tenant.vapi_org_id)["id"]
        except (requests.RequestException, ProvisioningError) as e:
            logger.warning("Vapi assistant creation failed for tenant %s: %s", tenant.id, e)

    agent = VoiceAgent(tenant_id=tenant.id, vapi_agent_id=vapi_agent_id, status="active", **body.model_dump())
    db.add(agent)
    db.commit()
    db.refresh(agent)
    logger.info("Voice agent %s created for tenant %s (vapi=%s)", agent.id, tenant.id, vapi_agent_id)
    return agent
