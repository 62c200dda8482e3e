"""CRM customer record."""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, JSON
from sqlalchemy.sql import func

from juno.database import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100))
    email = Column(String(320), index=True)
    phone_number = Column(String(32))
    address = Column(Text)
    status = Column(String(32), default="new")  # new, contacted, qualified, converted, churned
    custom_fields = Column(JSON, default=dict)
    assigned_to = Column(Integer, ForeignKey("user_accounts.id"), nullable=True)
    last_interaction = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
