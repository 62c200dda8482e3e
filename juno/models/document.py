"""Uploaded organization document and its review state."""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text
from sqlalchemy.sql import func

from juno.database import Base


class OrganizationDocument(Base):
    __tablename__ = "organization_documents"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    document_type = Column(String(64), nullable=False)  # business_registration, tax_certificate, ...
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(512), nullable=False)  # storage object key
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String(100), nullable=False)
    uploaded_by = Column(Integer, ForeignKey("user_accounts.id"))

    status = Column(String(20), default="pending", nullable=False)  # pending, approved, rejected, requires_info
    review_notes = Column(Text)
    reviewed_by = Column(Integer, ForeignKey("user_accounts.id"))
    reviewed_at = Column(DateTime(timezone=True))

    upload_date = Column(DateTime(timezone=True), server_default=func.now())
