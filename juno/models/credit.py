"""Credit balance, append-only transaction log, and purchasable packages."""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Text, CheckConstraint, Index
from sqlalchemy.sql import func

from juno.database import Base


class CreditBalance(Base):
    """Current balance; one row per tenant, mutated only by juno.ledger."""

    __tablename__ = "credit_balances"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, unique=True, index=True)
    balance = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_credit_balance_non_negative"),
    )


class CreditTransaction(Base):
    """Immutable ledger entry. Amount is signed: purchases positive, usage negative."""

    __tablename__ = "credit_transactions"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    transaction_type = Column(String(40), nullable=False)
    description = Column(Text, nullable=False)
    reference_id = Column(String(255))  # payment intent id, call id, admin action, ...
    created_by = Column(String(100))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_credit_transactions_reference", "tenant_id", "reference_id"),
    )


class CreditPackage(Base):
    """A purchasable bundle of credits."""

    __tablename__ = "credit_packages"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    credits = Column(Integer, nullable=False)
    price_usd_cents = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
