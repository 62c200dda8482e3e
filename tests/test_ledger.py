"""Tests for the credit ledger: signed amounts, atomic updates and idempotent purchases."""

from __future__ import annotations

import pytest

from juno.errors import InsufficientCreditsError, LedgerError
from juno.ledger.credits import (
    get_balance,
    reconcile,
    recent_transactions,
    signed_amount,
    update_credits,
)
from juno.models import CreditBalance, CreditTransaction


class TestSignedAmount:
    def test_debit_types_always_negative(self) -> None:
        assert signed_amount(25, "sms") == -25
        assert signed_amount(-25, "call") == -25
        assert signed_amount(10, "credit_penalty") == -10

    def test_credit_types_always_positive(self) -> None:
        assert signed_amount(100, "purchase") == 100
        assert signed_amount(-100, "credit_refund") == 100

    def test_adjustment_keeps_sign(self) -> None:
        assert signed_amount(-40, "credit_adjustment") == -40
        assert signed_amount(40, "credit_adjustment") == 40

    def test_zero_rejected(self) -> None:
        with pytest.raises(LedgerError):
            signed_amount(0, "usage")

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(LedgerError, match="Unknown transaction type"):
            signed_amount(5, "gift")


class TestUpdateCredits:
    def test_balance_equals_sum_of_transactions(self, db, make_tenant) -> None:
        tenant = make_tenant()
        for amount, kind in [(1000, "purchase"), (35, "call"), (12, "sms"), (-50, "credit_adjustment"),
                             (200, "credit_bonus"), (3, "email"), (40, "credit_refund")]:
            update_credits(db, tenant.id, amount, kind, f"{kind} entry")

        assert get_balance(db, tenant.id) == 1000 - 35 - 12 - 50 + 200 - 3 + 40
        assert reconcile(db, tenant.id) == get_balance(db, tenant.id)

    def test_entry_records_balance_after(self, db, make_tenant) -> None:
        tenant = make_tenant(balance=100)
        entry = update_credits(db, tenant.id, 30, "usage", "Call minutes", reference_id="call_1", created_by="7")
        assert entry.amount == -30
        assert entry.balance_after == 70
        assert entry.reference_id == "call_1"
        assert entry.created_by == "7"

    def test_insufficient_credits_applies_nothing(self, db, make_tenant) -> None:
        tenant = make_tenant(balance=20)
        count_before = db.query(CreditTransaction).filter(CreditTransaction.tenant_id == tenant.id).count()

        with pytest.raises(InsufficientCreditsError) as exc:
            update_credits(db, tenant.id, 21, "usage", "Too much")

        assert "Cannot deduct 21 credits. Current balance: 20" in str(exc.value)
        assert get_balance(db, tenant.id) == 20
        assert db.query(CreditTransaction).filter(CreditTransaction.tenant_id == tenant.id).count() == count_before

    def test_debit_to_exactly_zero_allowed(self, db, make_tenant) -> None:
        tenant = make_tenant(balance=15)
        update_credits(db, tenant.id, 15, "sms", "Last messages")
        assert get_balance(db, tenant.id) == 0

    def test_missing_balance_row_created(self, db, make_tenant) -> None:
        tenant = make_tenant()
        db.query(CreditBalance).filter(CreditBalance.tenant_id == tenant.id).delete()
        db.commit()
        assert get_balance(db, tenant.id) == 0

        update_credits(db, tenant.id, 50, "credit_bonus", "Bonus")
        assert get_balance(db, tenant.id) == 50

    def test_purchase_idempotent_on_reference(self, db, make_tenant) -> None:
        tenant = make_tenant()
        first = update_credits(db, tenant.id, 1000, "purchase", "Growth", reference_id="pi_123")
        second = update_credits(db, tenant.id, 1000, "purchase", "Growth", reference_id="pi_123")

        assert first.id == second.id
        assert get_balance(db, tenant.id) == 1000
        assert reconcile(db, tenant.id) == 1000

    def test_usage_with_same_reference_not_deduplicated(self, db, make_tenant) -> None:
        tenant = make_tenant(balance=100)
        update_credits(db, tenant.id, 10, "call", "Minute 1", reference_id="call_9")
        update_credits(db, tenant.id, 10, "call", "Minute 2", reference_id="call_9")
        assert get_balance(db, tenant.id) == 80

    def test_tenants_isolated(self, db, make_tenant) -> None:
        a = make_tenant("Alpha", balance=100)
        b = make_tenant("Beta", balance=5)
        update_credits(db, a.id, 60, "usage", "Usage")
        assert get_balance(db, a.id) == 40
        assert get_balance(db, b.id) == 5


class TestRecentTransactions:
    def test_newest_first_and_limited(self, db, make_tenant) -> None:
        tenant = make_tenant(balance=100)
        for i in range(12):
            update_credits(db, tenant.id, 1, "usage", f"use {i}")

        rows = recent_transactions(db, tenant.id, limit=10)
        assert len(rows) == 10
        assert rows[0].description == "use 11"
        assert rows[0].balance_after == 88
