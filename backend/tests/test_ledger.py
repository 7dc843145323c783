# Overview: Pytest coverage for the pure ledger/report engine.

"""
Ledger engine tests (no database).

Covers line and cart totals, loyalty points, clamped stock decrement and
the shift totals used by daily reports.
"""

import pytest

from mercado.services import ledger
from mercado.services.cart import CartItem


def _entry(kind, cents):
    return {"type": kind, "amount_cents": cents}


class TestTotals:
    def test_line_total_dict(self):
        assert ledger.line_total({"price_cents": 899, "quantity": 3}) == 2697

    def test_line_total_object(self):
        item = CartItem(id=1, name="Arroz", price_cents=2599, image_url=None, quantity=2)
        assert ledger.line_total(item) == 5198

    def test_cart_total(self):
        items = [
            {"price_cents": 2599, "quantity": 1},
            {"price_cents": 499, "quantity": 4},
        ]
        assert ledger.cart_total(items) == 4595

    def test_empty_cart_total_is_zero(self):
        assert ledger.cart_total([]) == 0


class TestLoyaltyPoints:
    def test_one_point_per_real(self):
        assert ledger.loyalty_points(4550, 1) == 45

    def test_floor_with_larger_divisor(self):
        assert ledger.loyalty_points(4550, 10) == 4
        assert ledger.loyalty_points(999, 10) == 0

    def test_zero_total(self):
        assert ledger.loyalty_points(0, 1) == 0

    def test_invalid_divisor(self):
        with pytest.raises(ValueError):
            ledger.loyalty_points(1000, 0)


class TestStockDecrement:
    def test_regular_decrement(self):
        assert ledger.decrement_stock(10, 3) == 7

    @pytest.mark.parametrize("stock,quantity", [(5, 8), (0, 1), (3, 3)])
    def test_never_negative(self, stock, quantity):
        assert ledger.decrement_stock(stock, quantity) >= 0

    def test_oversell_clamps_to_zero(self):
        assert ledger.decrement_stock(5, 8) == 0


class TestShiftTotals:
    def test_no_sales_final_equals_initial(self):
        totals = ledger.compute_shift_totals([], [_entry("initial", 20000)])
        assert totals.total_sales_cents == 0
        assert totals.total_sangria_cents == 0
        assert totals.final_cash_cents == totals.initial_cash_cents == 20000

    def test_sale_and_withdrawal(self):
        sales = [{"total_cents": 4550}]
        cash_flow = [
            _entry("initial", 20000),
            _entry("sale", 4550),
            _entry("sangria", -3000),
        ]
        totals = ledger.compute_shift_totals(sales, cash_flow)

        assert totals.initial_cash_cents == 20000
        assert totals.total_sales_cents == 4550
        assert totals.total_sangria_cents == 3000
        assert totals.final_cash_cents == 21550

    def test_missing_initial_entry_counts_as_zero(self):
        totals = ledger.compute_shift_totals([{"total_cents": 1000}], [_entry("sale", 1000)])
        assert totals.initial_cash_cents == 0
        assert totals.final_cash_cents == 1000

    def test_total_sales_is_sum_of_sales(self):
        sales = [{"total_cents": c} for c in (100, 250, 3999)]
        totals = ledger.compute_shift_totals(sales, [_entry("initial", 0)])
        assert totals.total_sales_cents == 4349

    def test_multiple_withdrawals_reported_as_absolute(self):
        cash_flow = [_entry("initial", 10000), _entry("sangria", -1000), _entry("sangria", -2500)]
        totals = ledger.compute_shift_totals([], cash_flow)
        assert totals.total_sangria_cents == 3500
        assert totals.final_cash_cents == 6500

    def test_to_dict(self):
        totals = ledger.compute_shift_totals([], [_entry("initial", 500)])
        assert totals.to_dict() == {
            "initial_cash_cents": 500,
            "total_sales_cents": 0,
            "total_sangria_cents": 0,
            "final_cash_cents": 500,
        }
