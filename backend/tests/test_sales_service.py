"""
Sale ledger tests: creation, edit and reversal against a real session.

Every scenario passes an explicit `now` so ids, windows and promotions are
deterministic.
"""

from datetime import date, datetime, timedelta

import pytest

from shopsync.errors import NotFoundError, ValidationError
from shopsync.extensions import db
from shopsync.models import Customer, LoyaltyTransaction, Product, Sale
from shopsync.services import sales_service, settings_service
from shopsync.services.pricing_service import round_currency

from conftest import line, make_customer


NOW = datetime(2026, 10, 18, 12, 0, 0)


@pytest.fixture
def brackets(loyalty_defaults):
    settings_service.update_earning_rules([
        {"min_spend_cents": 0, "max_spend_cents": 50000, "points_per_hundred": 1},
        {"min_spend_cents": 50100, "max_spend_cents": 100000, "points_per_hundred": 1.5},
    ], now=NOW)
    return loyalty_defaults


def _stock(product_id):
    return db.session.get(Product, product_id).quantity


def _ledger(customer_id):
    return (
        db.session.query(LoyaltyTransaction)
        .filter_by(customer_id=customer_id)
        .order_by(LoyaltyTransaction.occurred_at.asc(), LoyaltyTransaction.points_before.desc())
        .all()
    )


class TestCreateSale:
    def test_new_customer_earns_bracket_points(self, brackets, products):
        sale = sales_service.create_sale(
            [line("oil-1l", 1, 60000)],
            customer_info={"code": "ka 01 ab 1234", "name": "Ravi"},
            amount_paid=60000,
            now=NOW,
        )

        assert sale.id == "20261018120000"
        assert sale.points_earned == 9
        assert sale.final_loyalty_points == 9
        assert sale.payment_status == "PAID"

        customer = db.session.get(Customer, "KA01AB1234")
        assert customer.name == "Ravi"
        assert customer.loyalty_points == 9
        assert customer.tier_id == "base-tier"
        assert customer.balance_cents == 0
        assert [s.id for s in customer.sales] == [sale.id]

        entries = _ledger("KA01AB1234")
        assert [(e.transaction_type, e.points, e.points_before, e.points_after, e.sale_id) for e in entries] == [
            ("EARNED", 9, 0, 9, sale.id),
        ]
        assert _stock("oil-1l") == 9

    def test_redemption_capped_to_bill(self, loyalty_defaults, products):
        make_customer(loyalty_defaults, code="RED", points=50)

        sale = sales_service.create_sale(
            [line("manual-wash", 1, 1500, name="Bike wash")],
            customer_info={"code": "RED"},
            redeemed_points=20,
            now=NOW,
        )

        assert sale.loyalty_discount_cents == 1500
        assert sale.total_cents == 0
        assert sale.redeemed_points == 20
        assert sale.payment_status == "PAID"
        assert db.session.get(Customer, "RED").loyalty_points == 30
        redeemed = db.session.query(LoyaltyTransaction).filter_by(transaction_type="REDEEMED").one()
        assert (redeemed.points_before, redeemed.points_after) == (50, 30)

    def test_over_redemption_rejected_without_side_effects(self, loyalty_defaults, products):
        make_customer(loyalty_defaults, code="RED", points=50)

        with pytest.raises(ValidationError):
            sales_service.create_sale(
                [line("oil-1l", 1, 45000)],
                customer_info={"code": "RED"},
                redeemed_points=60,
                now=NOW,
            )

        assert _stock("oil-1l") == 10
        assert db.session.query(Sale).count() == 0
        assert db.session.get(Customer, "RED").loyalty_points == 50

    def test_new_customer_redemption_is_ignored(self, loyalty_defaults, products):
        sale = sales_service.create_sale(
            [line("spark-plug", 1, 15000)],
            customer_info={"code": "NEW1"},
            redeemed_points=10,
            now=NOW,
        )
        assert sale.redeemed_points == 0
        assert sale.loyalty_discount_cents == 0

    def test_walk_in_never_earns_points(self, loyalty_defaults, products):
        sale = sales_service.create_sale([line("oil-1l", 2, 45000)], amount_paid=50000, now=NOW)

        assert sale.customer_id == "WALKIN"
        assert sale.points_earned == 0
        assert sale.payment_status == "PARTIAL"
        walk_in = db.session.get(Customer, "WALKIN")
        assert walk_in.loyalty_points == 0
        assert walk_in.balance_cents == 40000

    def test_previous_balance_is_brought_forward(self, loyalty_defaults, products):
        make_customer(loyalty_defaults, code="OWES", balance_cents=5000)

        sale = sales_service.create_sale(
            [line("spark-plug", 1, 10000)], customer_info={"code": "OWES"}, now=NOW,
        )

        assert sale.previous_balance_cents == 5000
        assert sale.total_cents == 15000
        assert sale.balance_due_cents == 15000
        assert sale.payment_status == "UNPAID"
        assert db.session.get(Customer, "OWES").balance_cents == 15000

    def test_total_identity_holds(self, loyalty_defaults, products):
        make_customer(loyalty_defaults, code="ID1", points=10, balance_cents=2500)

        sale = sales_service.create_sale(
            [
                line("oil-1l", 1, 45000, discount_value=10, discount_type="percentage"),
                line("spark-plug", 3, 15000, discount_value=250),
            ],
            overall_discount=5,
            discount_type="percentage",
            customer_info={"code": "ID1"},
            redeemed_points=5,
            tuning_charges=12000,
            labor_charges=8000,
            amount_paid=20000,
            now=NOW,
        )

        expected = round_currency(
            sale.subtotal_after_item_discount_cents
            + sale.tuning_charges_cents
            + sale.labor_charges_cents
            - sale.overall_discount_cents
            + sale.previous_balance_cents
            - sale.loyalty_discount_cents
        )
        assert sale.total_cents == expected
        assert sale.balance_due_cents == sale.total_cents - 20000
        assert sale.payment_status == "PARTIAL"

    def test_percentage_overall_discount_is_a_percent(self, loyalty_defaults, products):
        sale = sales_service.create_sale(
            [line("spark-plug", 1, 10000)], overall_discount=10, discount_type="percentage", now=NOW,
        )
        assert sale.overall_discount_cents == 1000
        assert sale.total_cents == 9000

    def test_insufficient_stock_leaves_everything_untouched(self, loyalty_defaults, products):
        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale(
                [line("spark-plug", 1, 15000), line("chain-kit", 3, 150000)],
                customer_info={"code": "STOCK"},
                now=NOW,
            )

        assert exc.value.details["items"][0]["product_id"] == "chain-kit"
        assert _stock("spark-plug") == 20
        assert _stock("chain-kit") == 2
        assert db.session.get(Customer, "STOCK") is None

    def test_stock_checked_against_combined_quantity(self, loyalty_defaults, products):
        with pytest.raises(ValidationError):
            sales_service.create_sale(
                [line("chain-kit", 1, 150000), line("chain-kit", 2, 150000)], now=NOW,
            )
        assert _stock("chain-kit") == 2

    def test_unknown_product(self, loyalty_defaults, products):
        with pytest.raises(NotFoundError):
            sales_service.create_sale([line("ghost", 1, 1000)], now=NOW)

    def test_empty_bill_rejected_but_service_only_sale_allowed(self, loyalty_defaults):
        with pytest.raises(ValidationError):
            sales_service.create_sale([], now=NOW)

        sale = sales_service.create_sale([], labor_charges=30000, customer_info={"code": "SVC"}, now=NOW)
        assert sale.total_cents == 30000
        assert sale.points_earned == 0

    def test_same_second_ids_get_suffix(self, loyalty_defaults, products):
        first = sales_service.create_sale([line("spark-plug", 1, 15000)], now=NOW)
        second = sales_service.create_sale([line("spark-plug", 1, 15000)], now=NOW)
        third = sales_service.create_sale([line("spark-plug", 1, 15000)], now=NOW)
        assert [first.id, second.id, third.id] == ["20261018120000", "20261018120000-1", "20261018120000-2"]

    def test_tier_and_promotion_multipliers_are_recorded(self, loyalty_defaults, products):
        settings_service.update_customer_tiers([
            {"id": "base-tier", "name": "Standard", "rank": 0, "period_value": 12, "period_unit": "months"},
            {"id": "gold", "name": "Gold", "rank": 1, "min_visits": 1, "min_spend_cents": 50000,
             "period_value": 12, "period_unit": "months", "points_multiplier": 2},
        ], now=NOW)
        settings_service.add_promotion({
            "name": "Festival", "start_date": "2026-10-18", "end_date": "2026-10-18", "multiplier": 1.5,
        })

        first = sales_service.create_sale([line("oil-1l", 1, 60000)], customer_info={"code": "VIP"}, now=NOW)
        assert first.tier_applied is None
        assert first.promotion_applied == {"name": "Festival", "multiplier": 1.5}
        assert first.points_earned == 9
        assert db.session.get(Customer, "VIP").tier_id == "gold"

        second = sales_service.create_sale(
            [line("oil-1l", 1, 60000)], customer_info={"code": "VIP"}, now=NOW + timedelta(days=1),
        )
        assert second.tier_applied == {"id": "gold", "name": "Gold", "multiplier": 2.0}
        assert second.promotion_applied is None
        assert second.points_earned == 12
        assert second.final_loyalty_points == 21


class TestUpdateSale:
    def test_edit_reprices_and_resums_balance(self, loyalty_defaults, products):
        make_customer(loyalty_defaults, code="EDIT", balance_cents=1000)
        sale = sales_service.create_sale(
            [line("oil-1l", 1, 45000), line("spark-plug", 1, 15000)],
            customer_info={"code": "EDIT"},
            amount_paid=10000,
            now=NOW,
        )
        points_before_edit = db.session.get(Customer, "EDIT").loyalty_points

        edited = sales_service.update_sale(sale.id, {
            "items": [line("oil-1l", 1, 45000)],
            "overall_discount": 5000,
            "discount_type": "fixed",
        }, now=NOW + timedelta(hours=1))

        assert len(edited.items) == 1
        assert edited.previous_balance_cents == 1000
        assert edited.total_cents == 45000 - 5000 + 1000
        assert edited.balance_due_cents == edited.total_cents - 10000
        assert edited.payment_status == "PARTIAL"
        customer = db.session.get(Customer, "EDIT")
        assert customer.balance_cents == edited.balance_due_cents
        assert customer.loyalty_points == points_before_edit
        # the dropped spark plug goes back on the shelf
        assert _stock("oil-1l") == 9
        assert _stock("spark-plug") == 20

    def test_edit_deducts_added_units(self, loyalty_defaults, products):
        sale = sales_service.create_sale([line("oil-1l", 1, 45000)], now=NOW)

        sales_service.update_sale(sale.id, {
            "items": [line("oil-1l", 3, 45000), line("chain-kit", 2, 150000), line("manual-wash", 1, 2000)],
        }, now=NOW)

        assert _stock("oil-1l") == 7
        assert _stock("chain-kit") == 0

    def test_edit_beyond_stock_is_rejected_untouched(self, loyalty_defaults, products):
        sale = sales_service.create_sale([line("oil-1l", 1, 45000)], now=NOW)

        with pytest.raises(ValidationError) as exc:
            sales_service.update_sale(sale.id, {"items": [line("chain-kit", 50, 150000)]}, now=NOW)

        assert exc.value.details["items"][0]["product_id"] == "chain-kit"
        assert _stock("oil-1l") == 9
        assert _stock("chain-kit") == 2
        stored = db.session.get(Sale, sale.id)
        assert [item.product_id for item in stored.items] == ["oil-1l"]
        assert stored.total_cents == 45000

    def test_full_reversal_after_edit_restores_original_stock(self, loyalty_defaults, products):
        sale = sales_service.create_sale([line("oil-1l", 2, 45000)], customer_info={"code": "EDREV"}, now=NOW)
        assert _stock("oil-1l") == 8

        edited = sales_service.update_sale(sale.id, {"items": [line("oil-1l", 1, 45000)]}, now=NOW)
        assert _stock("oil-1l") == 9

        assert sales_service.reverse_sale(sale.id, [edited.items[0].id], now=NOW) is None
        assert _stock("oil-1l") == 10

    def test_swapping_products_then_reversing_balances_both(self, loyalty_defaults, products):
        sale = sales_service.create_sale([line("oil-1l", 1, 45000)], now=NOW)

        edited = sales_service.update_sale(sale.id, {"items": [line("chain-kit", 1, 150000)]}, now=NOW)
        assert (_stock("oil-1l"), _stock("chain-kit")) == (10, 1)

        sales_service.reverse_sale(sale.id, [edited.items[0].id], now=NOW)
        assert (_stock("oil-1l"), _stock("chain-kit")) == (10, 2)

    def test_unknown_sale(self, loyalty_defaults):
        with pytest.raises(NotFoundError):
            sales_service.update_sale("19990101000000", {"items": []})


class TestReverseSale:
    def _three_line_sale(self):
        return sales_service.create_sale(
            [line("oil-1l", 1, 45000), line("spark-plug", 2, 15000), line("chain-kit", 1, 150000)],
            customer_info={"code": "RET"},
            now=NOW,
        )

    def test_partial_reversal_keeps_remaining_line(self, loyalty_defaults, products):
        sale = self._three_line_sale()
        ledger_before = len(_ledger("RET"))
        returned = [item.id for item in sale.items if item.product_id in ("spark-plug", "chain-kit")]

        updated = sales_service.reverse_sale(sale.id, returned, now=NOW + timedelta(hours=1))

        assert updated is not None
        assert [item.product_id for item in updated.items] == ["oil-1l"]
        assert updated.subtotal_cents == 45000
        assert updated.total_cents == 45000
        assert updated.balance_due_cents == 45000
        assert _stock("spark-plug") == 20
        assert _stock("chain-kit") == 2
        assert _stock("oil-1l") == 9
        assert len(_ledger("RET")) == ledger_before
        assert db.session.get(Customer, "RET").balance_cents == 45000

    def test_full_reversal_deletes_sale_and_restores_customer(self, brackets, products):
        sale = sales_service.create_sale(
            [line("oil-1l", 1, 60000), line("manual-fitting", 1, 0, name="Fitting")],
            customer_info={"code": "FULL"},
            now=NOW,
        )
        assert db.session.get(Customer, "FULL").loyalty_points == 9

        result = sales_service.reverse_sale(sale.id, [item.id for item in sale.items], now=NOW)

        assert result is None
        assert db.session.get(Sale, "20261018120000") is None
        assert _stock("oil-1l") == 10
        customer = db.session.get(Customer, "FULL")
        assert customer.loyalty_points == 0
        assert customer.balance_cents == 0
        assert customer.sales == []
        assert _ledger("FULL") == []

    def test_returning_all_items_keeps_sale_with_charges(self, loyalty_defaults, products):
        sale = sales_service.create_sale(
            [line("spark-plug", 1, 15000)], labor_charges=5000, customer_info={"code": "LAB"}, now=NOW,
        )

        updated = sales_service.reverse_sale(sale.id, [sale.items[0].id], now=NOW)

        assert updated is not None
        assert updated.items == []
        assert updated.total_cents == 5000
        assert _stock("spark-plug") == 20

    def test_foreign_item_ids_rejected(self, loyalty_defaults, products):
        sale = self._three_line_sale()
        with pytest.raises(ValidationError):
            sales_service.reverse_sale(sale.id, [999999])
        assert _stock("oil-1l") == 9

    def test_deleted_product_is_skipped_on_restock(self, loyalty_defaults, products):
        sale = sales_service.create_sale([line("chain-kit", 1, 150000)], now=NOW)
        db.session.delete(db.session.get(Product, "chain-kit"))
        db.session.commit()

        assert sales_service.reverse_sale(sale.id, [sale.items[0].id], now=NOW) is None
        assert db.session.query(Sale).count() == 0
