#!/usr/bin/env python3
"""Seed roles, credit packages, a platform super-admin and a demo organization."""
import secrets
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from juno.database import SessionLocal, init_db
from juno.ledger.credits import get_balance, update_credits
from juno.models import CreditBalance, CreditPackage, Customer, Role, Tenant, UserAccount

ROLE_NAMES = ["super_admin", "admin", "manager", "agent"]

# name, credits, price in cents
PACKAGES = [
    ("Starter", 500, 2500),
    ("Growth", 1000, 4500),
    ("Business", 2500, 10000),
    ("Scale", 10000, 35000),
]


def seed():
    init_db()
    db = SessionLocal()

    roles = {}
    for name in ROLE_NAMES:
        role = db.query(Role).filter(Role.role_name == name).first()
        if not role:
            role = Role(role_name=name)
            db.add(role)
            db.flush()
        roles[name] = role
    db.commit()
    print(f"Roles: {', '.join(ROLE_NAMES)}")

    for name, credits, price in PACKAGES:
        if not db.query(CreditPackage).filter(CreditPackage.name == name).first():
            db.add(CreditPackage(name=name, credits=credits, price_usd_cents=price, is_active=True))
    db.commit()
    print(f"Credit packages: {len(PACKAGES)}")

    admin = db.query(UserAccount).filter(UserAccount.email == "platform@example.com").first()
    if not admin:
        admin = UserAccount(
            email="platform@example.com",
            first_name="Platform",
            last_name="Admin",
            role_id=roles["super_admin"].id,
            api_key=secrets.token_hex(32),
        )
        db.add(admin)
        db.commit()
    # Keys printed only for local/demo use
    print(f"Super-admin API key: {admin.api_key}")

    tenant = db.query(Tenant).filter(Tenant.name == "Demo Company").first()
    if not tenant:
        tenant = Tenant(
            name="Demo Company",
            schema_name=f"demo_company_{secrets.token_hex(4)}",
            industry="Professional Services",
            description="Demo organization for local development",
            size="11-50",
            location="Toronto, ON",
            setup_completed=True,
            approval_status="approved",
        )
        db.add(tenant)
        db.flush()
        db.add(CreditBalance(tenant_id=tenant.id, balance=0))
        owner = UserAccount(
            tenant_id=tenant.id,
            email="owner@demo.example.com",
            first_name="Dana",
            last_name="Owner",
            role_id=roles["admin"].id,
            api_key=secrets.token_hex(32),
        )
        db.add(owner)
        for first, last, status in [
            ("Alex", "Martin", "new"),
            ("Sam", "Lee", "contacted"),
            ("Jordan", "Patel", "qualified"),
            ("Riley", "Chen", "converted"),
        ]:
            db.add(Customer(
                tenant_id=tenant.id,
                first_name=first,
                last_name=last,
                email=f"{first.lower()}.{last.lower()}@example.com",
                status=status,
            ))
        db.commit()
        update_credits(db, tenant.id, 1000, "credit_bonus", "Demo starting credits", created_by="seed")
        print(f"Created tenant: {tenant.id}")
    else:
        owner = (
            db.query(UserAccount)
            .filter(UserAccount.tenant_id == tenant.id, UserAccount.role_id == roles["admin"].id)
            .first()
        )
        print(f"Using tenant: {tenant.id}")

    if owner:
        print(f"Demo admin API key: {owner.api_key}")
    print(f"Demo balance: {get_balance(db, tenant.id)} credits")
    db.close()


if __name__ == "__main__":
    seed()
