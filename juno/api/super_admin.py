"""Platform administration: tenant approval, document review, credit adjustments, stats."""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy import func
from sqlalchemy.orm import Session

from juno.api.auth import require_super_admin
from juno.database import get_db
from juno.errors import InsufficientCreditsError, LedgerError
from juno.ledger.credits import get_balance, recent_transactions, update_credits
from juno.lifecycle.provisioning import external_account_status, provision_external_accounts
from juno.models import (
    AdminAuditLog,
    CreditBalance,
    OrganizationDocument,
    Role,
    Tenant,
    UserAccount,
)
from juno.schemas import CreditAdjustment, CreditTransactionOut, DocumentOut, DocumentReview, StatusUpdate

router = APIRouter(prefix="/super-admin")
logger = logging.getLogger(__name__)

TenantIdPath = Path(..., gt=0, description="Tenant ID (positive integer)")
DocumentIdPath = Path(..., gt=0, description="Document ID (positive integer)")

STATUS_MAP = {
    "approve": "approved",
    "reject": "rejected",
    "request_info": "requires_info",
}


def log_admin_action(
    db: Session,
    actor: UserAccount,
    action: str,
    resource_type: str,
    resource_id: Any,
    details: Optional[dict] = None,
) -> None:
    """Append an audit row; committed with the caller's transaction."""
    db.add(AdminAuditLog(
        actor_id=actor.id,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id),
        details_json=json.dumps(details or {}, default=str),
    ))


def _get_tenant(db: Session, tenant_id: int) -> Tenant:
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    if not tenant:
        raise HTTPException(404, "Organization not found")
    return tenant


@router.get("/organizations")
def list_organizations(
    admin: UserAccount = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    """Every tenant with its admin contact, approval state, vendor ids, documents and balance."""
    doc_counts = dict(
        db.query(OrganizationDocument.tenant_id, func.count(OrganizationDocument.id))
        .group_by(OrganizationDocument.tenant_id)
        .all()
    )
    balances = dict(db.query(CreditBalance.tenant_id, CreditBalance.balance).all())
    admins: dict[int, UserAccount] = {}
    for account in (
        db.query(UserAccount)
        .join(Role, UserAccount.role_id == Role.id)
        .filter(Role.role_name == "admin")
        .order_by(UserAccount.id.asc())
        .all()
    ):
        admins.setdefault(account.tenant_id, account)

    result = []
    for t in db.query(Tenant).order_by(Tenant.created_at.desc(), Tenant.id.desc()).all():
        contact = admins.get(t.id)
        result.append({
            "id": t.id,
            "name": t.name,
            "industry": t.industry,
            "size": t.size,
            "location": t.location,
            "approval_status": t.approval_status,
            "rejection_reason": t.rejection_reason,
            "additional_info_requested": t.additional_info_requested,
            "approved_at": t.approved_at,
            "business_use_case": t.business_use_case,
            "messaging_volume_monthly": t.messaging_volume_monthly,
            "created_at": t.created_at,
            "admin_email": contact.email if contact else None,
            "admin_name": contact.full_name if contact else None,
            "external_accounts": external_account_status(t),
            "document_count": doc_counts.get(t.id, 0),
            "credit_balance": balances.get(t.id, 0),
        })
    return {"organizations": result}


@router.post("/organizations/update-status")
def update_organization_status(
    body: StatusUpdate,
    admin: UserAccount = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    """Approve, reject or request more information. Approval provisions vendor accounts best-effort."""
    tenant = _get_tenant(db, body.tenant_id)
    new_status = STATUS_MAP[body.status]

    tenant.approval_status = new_status
    if new_status == "approved":
        tenant.approved_at = datetime.now(timezone.utc)
        tenant.rejection_reason = None
        tenant.additional_info_requested = None
    elif new_status == "rejected":
        tenant.rejection_reason = body.reason
    else:
        tenant.additional_info_requested = body.reason
    db.commit()

    provisioning = None
    if new_status == "approved":
        try:
            provisioning = provision_external_accounts(db, tenant)
            if not provisioning.success:
                logger.warning("Provisioning for tenant %s had errors: %s", tenant.id, provisioning.errors)
                log_admin_action(
                    db, admin, "external_account_provisioning_errors", "organization", tenant.id,
                    {"errors": provisioning.errors},
                )
        except Exception as e:
            db.rollback()
            logger.exception("Provisioning failed for tenant %s", tenant.id)
            log_admin_action(
                db, admin, "external_account_provisioning_failed", "organization", tenant.id,
                {"error": str(e)},
            )

    log_admin_action(
        db, admin, f"update_organization_status_to_{new_status}", "organization", tenant.id,
        {
            "reason": body.reason,
            "new_status": new_status,
            "provisioning_result": provisioning.to_dict() if provisioning else None,
        },
    )
    db.commit()
    logger.info("Tenant %s status set to %s by super-admin %s", tenant.id, new_status, admin.id)

    if new_status == "approved":
        message = (
            "Organization approved and communication features activated successfully!"
            if provisioning and provisioning.success
            else "Organization approved! Some communication features may need manual configuration."
        )
    else:
        message = "Status updated successfully"
    return {
        "success": True,
        "message": message,
        "approval_status": new_status,
        "provisioning_result": provisioning.to_dict() if provisioning else None,
    }


@router.get("/organizations/{tenant_id}/credits")
def get_organization_credits(
    tenant_id: int = TenantIdPath,
    admin: UserAccount = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    tenant = _get_tenant(db, tenant_id)
    return {
        "organization": {"id": tenant.id, "name": tenant.name},
        "balance": get_balance(db, tenant.id),
        "transactions": [CreditTransactionOut.model_validate(t) for t in recent_transactions(db, tenant.id, 50)],
    }


@router.post("/organizations/{tenant_id}/credits")
def adjust_organization_credits(
    body: CreditAdjustment,
    tenant_id: int = TenantIdPath,
    admin: UserAccount = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    """Grant, refund or deduct credits with an audited reason."""
    tenant = _get_tenant(db, tenant_id)
    reason = body.reason.strip()
    if not reason:
        raise HTTPException(400, "A reason is required")
    if body.amount == 0:
        raise HTTPException(400, "Amount must be non-zero")

    log_admin_action(
        db, admin, "adjust_organization_credits", "organization", tenant.id,
        {"amount": body.amount, "transaction_type": body.transaction_type, "reason": reason},
    )
    try:
        entry = update_credits(
            db,
            tenant.id,
            body.amount,
            body.transaction_type,
            f"[SUPER ADMIN] {reason}",
            reference_id=f"admin:{admin.id}",
            created_by=f"super_admin:{admin.id}",
        )
    except InsufficientCreditsError as e:
        raise HTTPException(400, f"Adjustment would result in negative balance. {e}")
    except LedgerError as e:
        raise HTTPException(400, str(e))

    logger.info(
        "Super-admin %s adjusted credits for tenant %s: %+d (%s)",
        admin.id, tenant.id, entry.amount, body.transaction_type,
    )
    return {
        "success": True,
        "balance": entry.balance_after,
        "transaction": CreditTransactionOut.model_validate(entry),
    }


@router.get("/organizations/{tenant_id}/documents", response_model=list[DocumentOut])
def list_organization_documents(
    tenant_id: int = TenantIdPath,
    admin: UserAccount = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    _get_tenant(db, tenant_id)
    return (
        db.query(OrganizationDocument)
        .filter(OrganizationDocument.tenant_id == tenant_id)
        .order_by(OrganizationDocument.upload_date.desc(), OrganizationDocument.id.desc())
        .all()
    )


@router.patch("/documents/{document_id}", response_model=DocumentOut)
def review_document(
    body: DocumentReview,
    document_id: int = DocumentIdPath,
    admin: UserAccount = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    document = db.query(OrganizationDocument).filter(OrganizationDocument.id == document_id).first()
    if not document:
        raise HTTPException(404, "Document not found")
    document.status = body.status
    document.review_notes = body.review_notes
    document.reviewed_by = admin.id
    document.reviewed_at = datetime.now(timezone.utc)
    log_admin_action(
        db, admin, f"review_document_{body.status}", "document", document.id,
        {"tenant_id": document.tenant_id, "review_notes": body.review_notes},
    )
    db.commit()
    db.refresh(document)
    return document


@router.get("/organizations/{tenant_id}/external-accounts")
def get_external_accounts(
    tenant_id: int = TenantIdPath,
    admin: UserAccount = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    tenant = _get_tenant(db, tenant_id)
    return {"organization_id": tenant.id, **external_account_status(tenant)}


@router.get("/stats")
def platform_stats(
    admin: UserAccount = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    by_status = dict(
        db.query(Tenant.approval_status, func.count(Tenant.id)).group_by(Tenant.approval_status).all()
    )
    total_credits = db.query(func.coalesce(func.sum(CreditBalance.balance), 0)).scalar() or 0
    pending_documents = (
        db.query(OrganizationDocument).filter(OrganizationDocument.status == "pending").count()
    )
    return {
        "total_organizations": sum(by_status.values()),
        "pending": by_status.get("pending", 0),
        "approved": by_status.get("approved", 0),
        "rejected": by_status.get("rejected", 0),
        "requires_info": by_status.get("requires_info", 0),
        "total_credits_outstanding": int(total_credits),
        "pending_documents": pending_documents,
    }
