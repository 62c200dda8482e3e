"""Tests for the auto-recharge decision, single charge per attempt, cooldown and the cron sweep."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from juno.billing.auto_recharge import (
    needs_recharge,
    run_auto_recharge_sweep,
    select_package,
    trigger_auto_recharge,
)
from juno.billing.payments import handle_payment_succeeded
from juno.errors import AutoRechargeError, PaymentDeclinedError
from juno.ledger.credits import get_balance, reconcile
from juno.models import AutoRechargeSetting, PaymentRecord

CHARGE = "juno.connectors.stripe_gateway.create_payment_intent"


def _intent(status: str = "succeeded", intent_id: str = "pi_auto") -> SimpleNamespace:
    return SimpleNamespace(id=intent_id, status=status, client_secret=f"{intent_id}_secret")


@pytest.fixture
def enable_recharge(db, make_card):
    def _enable(tenant, minimum: int = 100, amount: int = 1000, card=None) -> AutoRechargeSetting:
        card = card or make_card(tenant)
        setting = AutoRechargeSetting(
            tenant_id=tenant.id,
            is_enabled=True,
            minimum_balance=minimum,
            recharge_amount=amount,
            payment_method_id=card.id,
        )
        db.add(setting)
        db.commit()
        return setting

    return _enable


class TestNeedsRecharge:
    def _setting(self, **overrides) -> AutoRechargeSetting:
        values = dict(is_enabled=True, minimum_balance=100, recharge_amount=1000, last_triggered_at=None)
        values.update(overrides)
        return AutoRechargeSetting(**values)

    def test_below_threshold(self) -> None:
        assert needs_recharge(99, self._setting()) is True

    def test_at_threshold_does_not_trigger(self) -> None:
        assert needs_recharge(100, self._setting()) is False

    def test_above_threshold(self) -> None:
        assert needs_recharge(5000, self._setting()) is False

    def test_disabled(self) -> None:
        assert needs_recharge(0, self._setting(is_enabled=False)) is False

    def test_no_setting(self) -> None:
        assert needs_recharge(0, None) is False

    def test_cooldown_window(self) -> None:
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        recent = self._setting(last_triggered_at=now - timedelta(minutes=10))
        old = self._setting(last_triggered_at=now - timedelta(minutes=61))
        assert needs_recharge(0, recent, now) is False
        assert needs_recharge(0, old, now) is True

    def test_naive_timestamps_treated_as_utc(self) -> None:
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        setting = self._setting(last_triggered_at=datetime(2026, 1, 1, 11, 30))
        assert needs_recharge(0, setting, now) is False


class TestSelectPackage:
    def test_smallest_covering_active_package(self, db, packages) -> None:
        assert select_package(db, 1000).name == "Growth"
        assert select_package(db, 600).name == "Growth"
        assert select_package(db, 100).name == "Starter"

    def test_inactive_packages_ignored(self, db, packages) -> None:
        # Legacy (1200, inactive) would otherwise be the smallest match
        assert select_package(db, 1100).name == "Business"

    def test_none_when_amount_too_large(self, db, packages) -> None:
        assert select_package(db, 50000) is None


class TestTriggerAutoRecharge:
    def test_no_charge_when_balance_at_or_above_minimum(self, db, make_tenant, packages, enable_recharge) -> None:
        tenant = make_tenant(balance=100)
        enable_recharge(tenant, minimum=100)
        with patch(CHARGE) as charge:
            outcome = trigger_auto_recharge(db, tenant.id)
        assert outcome.status == "not_needed"
        charge.assert_not_called()

    def test_exactly_one_charge_below_minimum(self, db, make_tenant, packages, enable_recharge) -> None:
        tenant = make_tenant(balance=40)
        setting = enable_recharge(tenant, minimum=100, amount=1000)

        with patch(CHARGE, return_value=_intent()) as charge:
            outcome = trigger_auto_recharge(db, tenant.id, triggered_by="cron")

        charge.assert_called_once()
        kwargs = charge.call_args.kwargs
        assert kwargs["amount_cents"] == 4500
        assert kwargs["off_session"] is True
        assert kwargs["idempotency_key"].startswith(f"auto-recharge:{tenant.id}:")
        assert kwargs["metadata"]["auto_recharge"] == "true"
        assert outcome.status == "succeeded"
        assert outcome.credits_added == 1000
        assert get_balance(db, tenant.id) == 1040
        assert reconcile(db, tenant.id) == 1040

        db.refresh(setting)
        assert setting.last_triggered_at is not None
        record = db.query(PaymentRecord).filter(PaymentRecord.stripe_payment_intent_id == "pi_auto").one()
        assert record.is_auto_recharge is True
        assert record.status == "succeeded"
        assert record.credits_purchased == 1000

    def test_tax_added_to_charge(self, db, make_tenant, packages, enable_recharge, monkeypatch) -> None:
        from juno.config import settings

        monkeypatch.setattr(settings, "manual_tax_enabled", True)
        monkeypatch.setattr(settings, "tax_rate", 0.13)
        tenant = make_tenant(balance=0)
        enable_recharge(tenant)

        with patch(CHARGE, return_value=_intent()) as charge:
            outcome = trigger_auto_recharge(db, tenant.id)

        assert charge.call_args.kwargs["amount_cents"] == 5085
        assert outcome.tax_cents == 585
        assert outcome.subtotal_cents == 4500

    def test_concurrent_trigger_blocked_by_cooldown(self, db, make_tenant, packages, enable_recharge) -> None:
        tenant = make_tenant(balance=10)
        enable_recharge(tenant)

        with patch(CHARGE, return_value=_intent(status="processing")) as charge:
            first = trigger_auto_recharge(db, tenant.id, triggered_by="cron")
            second = trigger_auto_recharge(db, tenant.id, triggered_by="user:1")

        assert first.status == "pending"
        assert second.status == "cooldown"
        charge.assert_called_once()
        assert get_balance(db, tenant.id) == 10

    def test_webhook_after_immediate_success_does_not_double_credit(
        self, db, make_tenant, packages, enable_recharge
    ) -> None:
        tenant = make_tenant(balance=0)
        enable_recharge(tenant)
        with patch(CHARGE, return_value=_intent(intent_id="pi_once")):
            trigger_auto_recharge(db, tenant.id)

        handle_payment_succeeded(db, {
            "id": "pi_once",
            "metadata": {"tenant_id": str(tenant.id), "credits": "1000", "description": "Auto-recharge"},
            "payment_method": None,
        })
        assert get_balance(db, tenant.id) == 1000

    def test_missing_payment_method(self, db, make_tenant, packages, enable_recharge, make_card) -> None:
        tenant = make_tenant(balance=0)
        card = make_card(tenant)
        enable_recharge(tenant, card=card)
        card.is_active = False
        db.commit()

        with patch(CHARGE) as charge, pytest.raises(AutoRechargeError, match="payment method"):
            trigger_auto_recharge(db, tenant.id)
        charge.assert_not_called()

    def test_no_package_covers_amount(self, db, make_tenant, packages, enable_recharge) -> None:
        tenant = make_tenant(balance=0)
        enable_recharge(tenant, amount=99999)
        with patch(CHARGE) as charge, pytest.raises(AutoRechargeError, match="No active credit package"):
            trigger_auto_recharge(db, tenant.id)
        charge.assert_not_called()

    def test_declined_card_propagates_and_credits_nothing(
        self, db, make_tenant, packages, enable_recharge
    ) -> None:
        tenant = make_tenant(balance=5)
        enable_recharge(tenant)
        with patch(CHARGE, side_effect=PaymentDeclinedError("Your card was declined.")):
            with pytest.raises(PaymentDeclinedError):
                trigger_auto_recharge(db, tenant.id)
        assert get_balance(db, tenant.id) == 5
        assert db.query(PaymentRecord).count() == 0

    def test_disabled_setting(self, db, make_tenant, packages, enable_recharge) -> None:
        tenant = make_tenant(balance=0)
        setting = enable_recharge(tenant)
        setting.is_enabled = False
        db.commit()
        with patch(CHARGE) as charge:
            assert trigger_auto_recharge(db, tenant.id).status == "disabled"
        charge.assert_not_called()


class TestSweep:
    def test_counters_and_isolation(self, db, make_tenant, packages, enable_recharge, make_user) -> None:
        low = make_tenant("Low Co", balance=20)
        enable_recharge(low)
        healthy = make_tenant("Healthy Co", balance=900)
        enable_recharge(healthy)
        broken = make_tenant("Broken Co", balance=0)
        enable_recharge(broken, amount=99999)
        make_user(broken, role="admin")

        with patch(CHARGE, return_value=_intent(intent_id="pi_sweep")) as charge, \
                patch("juno.billing.auto_recharge.send_low_balance_email", return_value=(False, "off")) as mail:
            result = run_auto_recharge_sweep(db)

        assert result.processed == 3
        assert result.recharged == 1
        assert result.skipped == 1
        assert result.failed == 1
        assert len(result.errors) == 1
        assert f"Tenant {broken.id}" in result.errors[0]
        charge.assert_called_once()
        mail.assert_called_once()
        assert get_balance(db, low.id) == 1020
