"""Stripe customers, saved cards, payment history and auto-recharge settings."""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Float, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from juno.database import Base


class StripeCustomer(Base):
    __tablename__ = "stripe_customers"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, unique=True, index=True)
    stripe_customer_id = Column(String(100), nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PaymentMethod(Base):
    """Card saved at Stripe for off-session charges."""

    __tablename__ = "payment_methods"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    stripe_payment_method_id = Column(String(100), nullable=False, unique=True, index=True)
    stripe_customer_id = Column(String(100), nullable=False)
    card_brand = Column(String(32))
    card_last4 = Column(String(4))
    card_exp_month = Column(Integer)
    card_exp_year = Column(Integer)
    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PaymentRecord(Base):
    """One Stripe payment intent and the credits it buys."""

    __tablename__ = "payment_history"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    stripe_payment_intent_id = Column(String(100), nullable=False, unique=True, index=True)
    stripe_customer_id = Column(String(100))
    payment_method_id = Column(Integer, ForeignKey("payment_methods.id"), nullable=True)
    amount_usd_cents = Column(Integer, nullable=False)
    subtotal_usd_cents = Column(Integer)
    tax_amount_usd_cents = Column(Integer, default=0)
    tax_rate = Column(Float, default=0)
    credits_purchased = Column(Integer, nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending, succeeded, failed
    is_auto_recharge = Column(Boolean, default=False, nullable=False)
    metadata_json = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class AutoRechargeSetting(Base):
    """Per-tenant auto-recharge toggle, threshold, amount and card."""

    __tablename__ = "auto_recharge_settings"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, unique=True, index=True)
    is_enabled = Column(Boolean, default=False, nullable=False)
    minimum_balance = Column(Integer, nullable=False)
    recharge_amount = Column(Integer, nullable=False)
    payment_method_id = Column(Integer, ForeignKey("payment_methods.id"), nullable=True)
    last_triggered_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    payment_method = relationship("PaymentMethod")
