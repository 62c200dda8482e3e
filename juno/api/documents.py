"""Organization document upload, listing and viewing."""
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Path, UploadFile
from sqlalchemy.orm import Session

from juno.api.auth import get_current_tenant, get_current_user, require_permission
from juno.config import settings
from juno.database import get_db
from juno.errors import DocumentRejectedError
from juno.models import OrganizationDocument, Tenant, UserAccount
from juno.schemas import DocumentOut
from juno.storage.documents import DocumentStore, build_object_key, remove_quietly, validate_upload

router = APIRouter()
logger = logging.getLogger(__name__)

DocumentIdPath = Path(..., gt=0, description="Document ID (positive integer)")


def get_document_store() -> DocumentStore:
    """Dependency for the blob store; overridden in tests."""
    if not settings.storage_enabled:
        raise HTTPException(503, "Document storage is not configured")
    return DocumentStore()


@router.post("/documents/upload", response_model=DocumentOut, status_code=201)
def upload_document(
    file: UploadFile = File(...),
    document_type: str = Form(..., min_length=1, max_length=64),
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("documents.upload")),
    store: DocumentStore = Depends(get_document_store),
    db: Session = Depends(get_db),
):
    """Validate, store the blob, then record it as pending review."""
    content = file.file.read(settings.document_max_bytes + 1)
    try:
        validate_upload(file.filename, file.content_type, len(content))
    except DocumentRejectedError as e:
        raise HTTPException(400, str(e))

    key = build_object_key(tenant.id, file.filename, file.content_type)
    try:
        store.upload(key, content, file.content_type)
    except Exception as e:
        logger.error("Document upload to storage failed for tenant %s: %s", tenant.id, e)
        raise HTTPException(500, "Failed to upload file")

    document = OrganizationDocument(
        tenant_id=tenant.id,
        document_type=document_type,
        file_name=file.filename,
        file_path=key,
        file_size=len(content),
        mime_type=file.content_type,
        uploaded_by=user.id,
        status="pending",
    )
    try:
        db.add(document)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Saving document record failed for tenant %s; removing blob %s", tenant.id, key)
        remove_quietly(store, key)
        raise HTTPException(500, "Failed to save document record")
    db.refresh(document)
    logger.info("Document %s uploaded for tenant %s (%s)", document.id, tenant.id, document_type)
    return document


@router.get("/documents", response_model=list[DocumentOut])
def list_documents(
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db),
):
    return (
        db.query(OrganizationDocument)
        .filter(OrganizationDocument.tenant_id == tenant.id)
        .order_by(OrganizationDocument.upload_date.desc(), OrganizationDocument.id.desc())
        .all()
    )


@router.get("/documents/{document_id}/view")
def view_document(
    document_id: int = DocumentIdPath,
    user: UserAccount = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store),
    db: Session = Depends(get_db),
):
    """Short-lived link to the file, for members of the owning tenant and super-admins."""
    document = db.query(OrganizationDocument).filter(OrganizationDocument.id == document_id).first()
    if not document or (user.role_name != "super_admin" and document.tenant_id != user.tenant_id):
        raise HTTPException(404, "Document not found")
    url = store.presigned_url(document.file_path)
    return {"url": url, "file_name": document.file_name, "mime_type": document.mime_type}
