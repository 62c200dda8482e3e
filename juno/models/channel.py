"""Communication channel resources that live at a vendor and are mirrored locally."""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from juno.database import Base


class PhoneNumber(Base):
    """Twilio number, optionally imported into Vapi. Billed monthly in credits."""

    __tablename__ = "tenant_phone_numbers"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    phone_number = Column(String(32), nullable=False)
    twilio_sid = Column(String(64))
    vapi_phone_number_id = Column(String(100))
    status = Column(String(20), default="active")  # active, suspended, released
    monthly_cost = Column(Integer, default=0, nullable=False)  # credits per billing period
    setup_cost = Column(Integer, default=0, nullable=False)
    next_billing_date = Column(DateTime(timezone=True), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class VoiceAgent(Base):
    """Vapi assistant owned by a tenant."""

    __tablename__ = "voice_agents"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    voice = Column(String(50), nullable=False)
    script = Column(Text, nullable=False)
    phone_number_id = Column(Integer, ForeignKey("tenant_phone_numbers.id"), nullable=True)
    vapi_agent_id = Column(String(100))
    status = Column(String(20), default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    phone_number = relationship("PhoneNumber")


class MailboxDomain(Base):
    """Sending domain registered with Resend."""

    __tablename__ = "mailbox_domains"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    domain = Column(String(255), nullable=False)
    resend_domain_id = Column(String(100))
    verified = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
