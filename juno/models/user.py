"""Roles and user accounts."""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from juno.database import Base


class Role(Base):
    """Named role; permissions are resolved in juno.permissions."""

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    role_name = Column(String(50), unique=True, nullable=False)  # super_admin, admin, manager, agent


class UserAccount(Base):
    """A person using the CRM. Super-admins may have no tenant."""

    __tablename__ = "user_accounts"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=True, index=True)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)
    email = Column(String(320), nullable=False, index=True)
    first_name = Column(String(100))
    last_name = Column(String(100))

    # API authentication
    api_key = Column(String(64), unique=True, index=True)

    date_of_joining = Column(DateTime(timezone=True), server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    tenant = relationship("Tenant")
    role = relationship("Role")

    @property
    def role_name(self) -> str:
        return self.role.role_name if self.role else "agent"

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()
