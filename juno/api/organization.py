"""Organization setup, profile, approval status and deletion."""
import logging
import re
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from juno.alerts.email import send_farewell_email
from juno.api.auth import get_current_tenant, get_optional_user, require_permission
from juno.config import settings
from juno.database import get_db
from juno.ledger.credits import update_credits
from juno.lifecycle.deletion import USER_NOTE, delete_organization
from juno.lifecycle.provisioning import external_account_status
from juno.models import CreditBalance, Role, Tenant, UserAccount
from juno.schemas import (
    OrganizationDelete,
    OrganizationDeleteResponse,
    OrganizationOut,
    OrganizationSetup,
    OrganizationSetupResponse,
    OrganizationStatus,
    OrganizationUpdate,
)

router = APIRouter()
logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("industry", "description", "size", "location")


def _schema_name(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")[:40] or "org"
    return f"{slug}_{secrets.token_hex(4)}"


@router.post("/organization/setup", response_model=OrganizationSetupResponse)
def setup_organization(
    data: OrganizationSetup,
    user: Optional[UserAccount] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """
    Create an organization with the caller as its admin.

    Without an X-API-Key a new account is created and its API key is returned
    only in this response. An existing account without an organization (for
    example after its organization was deleted) may also call this.
    """
    if user is not None and user.role_name == "super_admin":
        raise HTTPException(400, "Platform administrators cannot own an organization")
    if user is not None and user.tenant_id is not None:
        raise HTTPException(400, "Account already belongs to an organization")
    if user is None:
        email = data.email.strip().lower()
        taken = db.query(UserAccount).filter(func.lower(UserAccount.email) == email).first()
        if taken:
            raise HTTPException(409, "An account with this email already exists")

    admin_role = db.query(Role).filter(Role.role_name == "admin").first()
    if not admin_role:
        raise HTTPException(500, "Roles are not seeded")

    tenant = Tenant(
        name=data.name,
        schema_name=_schema_name(data.name),
        industry=data.industry,
        description=data.description,
        size=data.size,
        location=data.location,
        business_use_case=data.business_use_case,
        messaging_volume_monthly=data.messaging_volume_monthly,
        setup_completed=all(getattr(data, f) for f in PROFILE_FIELDS),
        approval_status="pending",
    )
    db.add(tenant)
    db.flush()
    db.add(CreditBalance(tenant_id=tenant.id, balance=0))

    api_key = None
    if user is None:
        api_key = secrets.token_hex(32)
        user = UserAccount(
            email=email,
            first_name=data.first_name,
            last_name=data.last_name,
            api_key=api_key,
        )
        db.add(user)
    user.tenant_id = tenant.id
    user.role_id = admin_role.id
    db.commit()
    db.refresh(tenant)
    logger.info("Organization created: id=%s name=%s admin=%s", tenant.id, tenant.name, user.email)

    if settings.signup_bonus_credits > 0:
        update_credits(
            db, tenant.id, settings.signup_bonus_credits, "credit_bonus",
            "Welcome bonus credits", created_by="system",
        )

    return OrganizationSetupResponse(
        organization=OrganizationOut.model_validate(tenant),
        user_id=user.id,
        api_key=api_key,
    )


@router.get("/organization", response_model=OrganizationOut)
def get_organization(tenant: Tenant = Depends(get_current_tenant)):
    return tenant


@router.put("/organization", response_model=OrganizationOut)
def update_organization(
    data: OrganizationUpdate,
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("settings.organization")),
    db: Session = Depends(get_db),
):
    """Update profile fields in the allow-list; other submitted fields are ignored."""
    changes = data.model_dump(exclude_unset=True)
    if changes.get("name") is None:
        changes.pop("name", None)
    for key, value in changes.items():
        setattr(tenant, key, value)
    if all(getattr(tenant, f) for f in PROFILE_FIELDS):
        tenant.setup_completed = True
    db.commit()
    db.refresh(tenant)
    logger.info("Organization %s updated by user %s: %s", tenant.id, user.id, sorted(changes))
    return tenant


@router.get("/organization/status", response_model=OrganizationStatus)
def organization_status(tenant: Tenant = Depends(get_current_tenant)):
    return OrganizationStatus(
        approval_status=tenant.approval_status,
        rejection_reason=tenant.rejection_reason,
        additional_info_requested=tenant.additional_info_requested,
        approved_at=tenant.approved_at,
        external_accounts=external_account_status(tenant),
    )


@router.delete("/organization", response_model=OrganizationDeleteResponse)
def remove_organization(
    body: OrganizationDelete,
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("settings.organization")),
    db: Session = Depends(get_db),
):
    """Permanently delete the caller's organization after name confirmation."""
    if not body.confirm_deletion:
        raise HTTPException(400, "Deletion confirmation required")
    if body.organization_name != tenant.name:
        raise HTTPException(400, "Organization name confirmation does not match")

    tenant_name = tenant.name
    email, first_name = user.email, user.first_name
    logger.info("Deleting organization %s (%s) at request of user %s", tenant.id, tenant_name, user.id)
    cleanup = delete_organization(db, tenant)

    sent, error = send_farewell_email(email, first_name, tenant_name)
    if not sent:
        logger.warning("Farewell email to %s not sent: %s", email, error)

    return OrganizationDeleteResponse(
        success=True,
        message="Organization deleted successfully",
        cleanup_results=cleanup.to_dict(),
        user_note=USER_NOTE,
    )
