"""Tenant (organization) model."""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text
from sqlalchemy.sql import func

from juno.database import Base


class Tenant(Base):
    """Billing and data-isolation unit of the CRM."""

    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    schema_name = Column(String(100), unique=True, index=True)

    # Profile (editable by the tenant admin)
    industry = Column(String(100))
    description = Column(Text)
    size = Column(String(50))
    location = Column(String(255))
    setup_completed = Column(Boolean, default=False)

    # Super-admin approval workflow
    approval_status = Column(String(20), default="pending", nullable=False)  # pending, approved, rejected, requires_info
    rejection_reason = Column(Text)
    additional_info_requested = Column(Text)
    approved_at = Column(DateTime(timezone=True))
    business_use_case = Column(Text)
    messaging_volume_monthly = Column(Integer)

    # Linked vendor accounts
    vapi_org_id = Column(String(100))
    twilio_subaccount_sid = Column(String(64))
    resend_domain_id = Column(String(100))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
