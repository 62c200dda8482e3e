"""Team invitations: create, list, cancel, and the public accept flow."""
import logging
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from juno.alerts.email import send_invitation_email, send_welcome_email
from juno.api.auth import get_current_tenant, require_permission
from juno.config import settings
from juno.database import get_db
from juno.models import Invitation, Role, Tenant, UserAccount
from juno.permissions import TENANT_ROLES
from juno.schemas import InvitationAccept, InvitationCreate, InvitationOut

router = APIRouter()
logger = logging.getLogger(__name__)

InvitationIdPath = Path(..., gt=0, description="Invitation ID (positive integer)")


def _utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _pending_invitation(db: Session, token: str) -> Invitation:
    invitation = (
        db.query(Invitation)
        .filter(Invitation.token == token, Invitation.status == "pending")
        .first()
    )
    if not invitation:
        raise HTTPException(404, "Invalid or expired invitation")
    if _utc(invitation.expires_at) < datetime.now(timezone.utc):
        raise HTTPException(400, "Invitation has expired")
    return invitation


@router.get("/invitations", response_model=list[InvitationOut])
def list_invitations(
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("team.read")),
    db: Session = Depends(get_db),
):
    return (
        db.query(Invitation)
        .filter(Invitation.tenant_id == tenant.id)
        .order_by(Invitation.created_at.desc(), Invitation.id.desc())
        .all()
    )


@router.post("/invitations")
def create_invitation(
    body: InvitationCreate,
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("team.invite")),
    db: Session = Depends(get_db),
):
    """Invite an email address to the tenant. A failed email does not fail the invitation."""
    email = body.email.strip().lower()
    role = db.query(Role).filter(Role.id == body.role_id).first()
    if not role or role.role_name not in TENANT_ROLES:
        raise HTTPException(404, "Role not found")

    member = (
        db.query(UserAccount)
        .filter(UserAccount.tenant_id == tenant.id, func.lower(UserAccount.email) == email)
        .first()
    )
    if member:
        raise HTTPException(400, "User is already a member of this organization")

    pending = (
        db.query(Invitation)
        .filter(
            Invitation.tenant_id == tenant.id,
            func.lower(Invitation.email) == email,
            Invitation.status == "pending",
        )
        .first()
    )
    if pending:
        raise HTTPException(400, "An invitation has already been sent to this email")

    invitation = Invitation(
        tenant_id=tenant.id,
        email=email,
        role_id=role.id,
        invited_by=user.id,
        token=secrets.token_urlsafe(32),
        status="pending",
        expires_at=datetime.now(timezone.utc) + timedelta(days=settings.invitation_ttl_days),
    )
    db.add(invitation)
    db.commit()
    db.refresh(invitation)
    logger.info("Invitation %s created for %s in tenant %s", invitation.id, email, tenant.id)

    email_sent, email_error = send_invitation_email(
        email, tenant.name, user.full_name, role.role_name, invitation.token, invitation.expires_at
    )
    return {
        "success": True,
        "invitation": InvitationOut.model_validate(invitation),
        "email_sent": email_sent,
        "email_error": email_error or None,
    }


@router.delete("/invitations/{invitation_id}")
def cancel_invitation(
    invitation_id: int = InvitationIdPath,
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("team.invite")),
    db: Session = Depends(get_db),
):
    invitation = (
        db.query(Invitation)
        .filter(Invitation.id == invitation_id, Invitation.tenant_id == tenant.id)
        .first()
    )
    if not invitation:
        raise HTTPException(404, "Invitation not found")
    if invitation.status != "pending":
        raise HTTPException(400, f"Invitation is already {invitation.status}")
    invitation.status = "cancelled"
    db.commit()
    return {"success": True}


@router.get("/invitations/accept")
def verify_invitation(
    token: str = Query(..., min_length=1, max_length=64),
    db: Session = Depends(get_db),
):
    """Public: describe a pending invitation so the invitee can confirm it."""
    invitation = _pending_invitation(db, token)
    return {
        "email": invitation.email,
        "organization_name": invitation.tenant.name,
        "role_name": invitation.role.role_name,
        "expires_at": invitation.expires_at,
    }


@router.post("/invitations/accept")
def accept_invitation(body: InvitationAccept, db: Session = Depends(get_db)):
    """
    Public: join the inviting tenant. An existing account with the invited
    email is moved into the tenant; otherwise a new account is created and
    its API key is returned only in this response.
    """
    invitation = _pending_invitation(db, body.token)
    tenant = invitation.tenant

    user = (
        db.query(UserAccount)
        .filter(func.lower(UserAccount.email) == invitation.email.lower())
        .order_by(UserAccount.id.asc())
        .first()
    )
    if user is not None:
        if user.role_name == "super_admin":
            raise HTTPException(400, "Platform administrators cannot join an organization")
        if user.tenant_id not in (None, tenant.id):
            raise HTTPException(400, "This account already belongs to another organization")

    # Existing accounts keep their key; only new accounts get one here
    api_key = None
    if user is None:
        api_key = secrets.token_hex(32)
        user = UserAccount(email=invitation.email, api_key=api_key)
        db.add(user)
    user.tenant_id = tenant.id
    user.role_id = invitation.role_id
    user.first_name = body.first_name or user.first_name
    user.last_name = body.last_name or user.last_name
    user.date_of_joining = datetime.now(timezone.utc)

    invitation.status = "accepted"
    invitation.accepted_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    logger.info("Invitation %s accepted: user %s joined tenant %s", invitation.id, user.id, tenant.id)

    sent, error = send_welcome_email(user.email, user.first_name, tenant.name)
    if not sent:
        logger.warning("Welcome email to %s not sent: %s", user.email, error)

    return {
        "success": True,
        "user_id": user.id,
        "organization_id": tenant.id,
        "role_name": invitation.role.role_name,
        "api_key": api_key,
    }
