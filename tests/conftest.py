"""Shared fixtures: in-memory database, API client and record factories."""

from __future__ import annotations

import secrets
from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import juno.models  # noqa: F401
from juno.config import settings
from juno.database import Base, get_db
from juno.ledger.credits import update_credits
from juno.main import app
from juno.middleware.rate_limit import get_counter
from juno.models import CreditBalance, CreditPackage, PaymentMethod, Role, Tenant, UserAccount


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """No test talks to a real vendor, whatever the local .env holds."""
    for name in (
        "stripe_secret_key",
        "stripe_webhook_secret",
        "twilio_account_sid",
        "twilio_auth_token",
        "vapi_api_key",
        "resend_api_key",
        "s3_access_key_id",
        "s3_secret_access_key",
        "cron_secret",
    ):
        monkeypatch.setattr(settings, name, "")
    monkeypatch.setattr(settings, "manual_tax_enabled", False)
    monkeypatch.setattr(settings, "signup_bonus_credits", 0)
    get_counter().reset()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def client(db: Session) -> TestClient:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def roles(db: Session) -> dict[str, Role]:
    result = {}
    for name in ("super_admin", "admin", "manager", "agent"):
        role = Role(role_name=name)
        db.add(role)
        result[name] = role
    db.commit()
    return result


@pytest.fixture
def packages(db: Session) -> list[CreditPackage]:
    rows = [
        CreditPackage(name="Starter", credits=500, price_usd_cents=2500),
        CreditPackage(name="Growth", credits=1000, price_usd_cents=4500),
        CreditPackage(name="Business", credits=2500, price_usd_cents=10000),
        CreditPackage(name="Legacy", credits=1200, price_usd_cents=4000, is_active=False),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def make_tenant(db: Session) -> Callable[..., Tenant]:
    def _make(name: str = "Acme Corp", balance: int = 0, approval_status: str = "approved", **fields) -> Tenant:
        tenant = Tenant(
            name=name,
            schema_name=f"{name.lower().replace(' ', '_')}_{secrets.token_hex(3)}",
            approval_status=approval_status,
            **fields,
        )
        db.add(tenant)
        db.flush()
        db.add(CreditBalance(tenant_id=tenant.id, balance=0))
        db.commit()
        if balance:
            update_credits(db, tenant.id, balance, "credit_bonus", "Opening balance", created_by="test")
        return tenant

    return _make


@pytest.fixture
def make_user(db: Session, roles: dict[str, Role]) -> Callable[..., UserAccount]:
    def _make(
        tenant: Optional[Tenant],
        role: str = "admin",
        email: Optional[str] = None,
        first_name: str = "Pat",
    ) -> UserAccount:
        user = UserAccount(
            tenant_id=tenant.id if tenant else None,
            role_id=roles[role].id,
            email=email or f"{role}-{secrets.token_hex(3)}@example.com",
            first_name=first_name,
            last_name="Tester",
            api_key=secrets.token_hex(32),
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_card(db: Session) -> Callable[..., PaymentMethod]:
    def _make(tenant: Tenant, pm_id: Optional[str] = None, is_default: bool = True) -> PaymentMethod:
        card = PaymentMethod(
            tenant_id=tenant.id,
            stripe_payment_method_id=pm_id or f"pm_{secrets.token_hex(4)}",
            stripe_customer_id=f"cus_{tenant.id}",
            card_brand="visa",
            card_last4="4242",
            card_exp_month=12,
            card_exp_year=2030,
            is_default=is_default,
            is_active=True,
        )
        db.add(card)
        db.commit()
        return card

    return _make


@pytest.fixture
def auth() -> Callable[[UserAccount], dict[str, str]]:
    def _headers(user: UserAccount) -> dict[str, str]:
        return {"X-API-Key": user.api_key}

    return _headers
