from datetime import datetime
from types import SimpleNamespace

import pytest

from shopsync.errors import InvariantViolation, NotFoundError, ValidationError
from shopsync.extensions import db
from shopsync.models import Customer, LoyaltyTransaction
from shopsync.services import loyalty_service, settings_service
from shopsync.services.loyalty_schemas import ExpirySettings
from shopsync.services.loyalty_service import expirable_points, unspent_credits

from conftest import make_customer


NOW = datetime(2026, 10, 18, 12, 0, 0)


def _txn(kind, points, occurred_at):
    return SimpleNamespace(transaction_type=kind, points=points, occurred_at=occurred_at)


def _enable_expiry(**overrides):
    data = {
        "enabled": True,
        "inactivity_period_value": 12,
        "inactivity_period_unit": "months",
        "points_lifespan_value": 12,
        "points_lifespan_unit": "months",
        "reminder_period_value": 1,
        "reminder_period_unit": "months",
    }
    data.update(overrides)
    return settings_service.update_loyalty_expiry_settings(data, now=NOW)


class TestFifoMatching:
    def test_debits_consume_oldest_credits_first(self):
        txns = [
            _txn("EARNED", 30, datetime(2025, 1, 1)),
            _txn("EARNED", 20, datetime(2025, 6, 1)),
            _txn("REDEEMED", 40, datetime(2026, 1, 1)),
        ]
        remainders = [r.unspent for r in unspent_credits(txns)]
        assert remainders == [0, 10]

    def test_expirable_points_only_counts_old_unspent_credit(self):
        settings = ExpirySettings(enabled=True, points_lifespan_value=12, points_lifespan_unit="months")
        txns = [
            _txn("EARNED", 30, datetime(2025, 1, 1)),
            _txn("MANUAL_ADD", 20, datetime(2025, 6, 1)),
            _txn("EARNED", 50, datetime(2026, 9, 1)),
            _txn("MANUAL_SUBTRACT", 10, datetime(2026, 9, 2)),
        ]
        # 10 debited from the oldest credit: 20 + 20 unspent and older than a year
        assert expirable_points(txns, settings, NOW) == 40


class TestAdjustPoints:
    def test_manual_add_and_subtract_write_ledger(self, loyalty_defaults):
        make_customer(loyalty_defaults, code="P1", points=10)

        add = loyalty_service.adjust_customer_points("P1", 15, "Goodwill", now=NOW)
        sub = loyalty_service.adjust_customer_points("P1", -5, "Correction", now=NOW)

        assert (add.transaction_type, add.points, add.points_before, add.points_after) == ("MANUAL_ADD", 15, 10, 25)
        assert (sub.transaction_type, sub.points, sub.points_before, sub.points_after) == ("MANUAL_SUBTRACT", 5, 25, 20)
        assert db.session.get(Customer, "P1").loyalty_points == 20

    def test_deduct_below_zero_rejected(self, loyalty_defaults):
        make_customer(loyalty_defaults, code="P2", points=5)
        with pytest.raises(InvariantViolation):
            loyalty_service.adjust_customer_points("P2", -6, "Too much", now=NOW)
        assert db.session.get(Customer, "P2").loyalty_points == 5

    @pytest.mark.parametrize("delta,reason", [(5, ""), (0, "zero"), (1.5, "float")])
    def test_invalid_adjustments_rejected(self, loyalty_defaults, delta, reason):
        make_customer(loyalty_defaults, code="P3", points=5)
        with pytest.raises(ValidationError):
            loyalty_service.adjust_customer_points("P3", delta, reason, now=NOW)

    def test_unknown_customer(self, loyalty_defaults):
        with pytest.raises(NotFoundError):
            loyalty_service.adjust_customer_points("NOPE", 5, "x", now=NOW)


class TestDailyMaintenance:
    def test_inactive_customer_is_zeroed(self, loyalty_defaults):
        make_customer(loyalty_defaults, code="INACTIVE", points=30, seen_at=datetime(2026, 5, 18, 12, 0, 0))
        _enable_expiry(inactivity_period_value=4, points_lifespan_value=24)

        summary = loyalty_service.run_daily_maintenance(now=NOW)

        assert summary["inactive_customers"] == 1
        assert summary["points_removed"] == 30
        entries = (
            db.session.query(LoyaltyTransaction)
            .filter_by(customer_id="INACTIVE", transaction_type="MANUAL_SUBTRACT")
            .all()
        )
        assert [(e.points, e.reason, e.points_after) for e in entries] == [(30, "inactivity", 0)]
        assert db.session.get(Customer, "INACTIVE").loyalty_points == 0

    def test_lifespan_expiry_clamped_to_balance(self, loyalty_defaults):
        customer = make_customer(loyalty_defaults, code="OLD", points=40, seen_at=datetime(2025, 1, 10))
        customer.last_seen = datetime(2026, 10, 1)
        db.session.commit()
        _enable_expiry()

        loyalty_service.run_daily_maintenance(now=NOW)

        entry = db.session.query(LoyaltyTransaction).filter_by(customer_id="OLD", reason="expired").one()
        assert entry.points == 40
        assert db.session.get(Customer, "OLD").loyalty_points == 0

    def test_sweep_is_idempotent_within_a_day(self, loyalty_defaults):
        make_customer(loyalty_defaults, code="IDEM", points=30, seen_at=datetime(2026, 5, 18))
        _enable_expiry(inactivity_period_value=4)

        first = loyalty_service.run_daily_maintenance(now=NOW)
        second = loyalty_service.run_daily_maintenance(now=NOW.replace(hour=18))

        assert first is not None
        assert second is None
        assert db.session.query(LoyaltyTransaction).filter_by(transaction_type="MANUAL_SUBTRACT").count() == 1

    def test_force_bypasses_guard_and_disabled_expiry_still_recomputes_tiers(self, loyalty_defaults):
        make_customer(loyalty_defaults, code="T1", points=30, seen_at=datetime(2020, 1, 1))

        loyalty_service.run_daily_maintenance(now=NOW)
        summary = loyalty_service.run_daily_maintenance(now=NOW, force=True)

        assert summary["expiry_enabled"] is False
        assert summary["points_removed"] == 0
        customer = db.session.get(Customer, "T1")
        assert customer.loyalty_points == 30
        assert customer.tier_id == "base-tier"

    def test_points_expiring_soon(self, loyalty_defaults):
        customer = make_customer(loyalty_defaults, code="SOON", points=25, seen_at=datetime(2025, 11, 1))
        customer.last_seen = datetime(2026, 10, 1)
        db.session.commit()
        settings = _enable_expiry()

        # Credit dated 2025-11-01 lapses 2026-11-01, inside the one-month reminder window
        assert loyalty_service.points_expiring_soon(customer, settings, NOW) == 25
        assert loyalty_service.points_expiring_soon(customer, ExpirySettings(enabled=False), NOW) == 0
