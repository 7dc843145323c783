# Overview: Pytest coverage for shifts, sale settlement and shift closing.

"""
Shift service tests.

SALE COMMIT: stock decrement, loyalty points and the cash-flow entry are
written together or not at all.
SHIFT LIFECYCLE: OPEN -> CLOSED (report) and OPEN -> SUPERSEDED (new login).
"""

import pytest

from mercado.extensions import db
from mercado.models import (
    CashFlowEntry,
    Customer,
    DailyReport,
    Sale,
    SessionToken,
    SHIFT_CLOSED,
    SHIFT_OPEN,
    SHIFT_SUPERSEDED,
)
from mercado.services import shift_service
from mercado.services.cart import Cart
from mercado.services.session_service import create_session
from mercado.services.shift_service import ShiftClosedError, ShiftError
from mercado.services.tenant_service import TenantAccessError
from mercado.validation import ValidationError


def _cart(*lines):
    cart = Cart()
    for product, quantity in lines:
        cart.add(product, quantity)
    return cart.items


def _item(product_id, price_cents, quantity=1, name="Produto"):
    return {"id": product_id, "name": name, "price_cents": price_cents, "image_url": None, "quantity": quantity}


class TestOpenShift:
    def test_seeds_single_initial_entry(self, db_session, supermarket, operator):
        shift = shift_service.open_shift(supermarket.id, operator.id, 20000)

        entries = shift_service.list_shift_cash_flow(shift)
        assert shift.status == SHIFT_OPEN
        assert len(entries) == 1
        assert entries[0].type == "initial"
        assert entries[0].amount_cents == 20000

    def test_new_shift_supersedes_open_one(self, db_session, supermarket, operator, products):
        first = shift_service.open_shift(supermarket.id, operator.id, 20000)
        shift_service.record_sale(first, _cart((products[0], 1)), operator.id)

        second = shift_service.open_shift(supermarket.id, operator.id, 20000)

        db.session.refresh(first)
        assert first.status == SHIFT_SUPERSEDED
        assert shift_service.list_shift_sales(second) == []
        assert [e.type for e in shift_service.list_shift_cash_flow(second)] == ["initial"]
        assert shift_service.get_open_shift(supermarket.id, operator.id).id == second.id

    def test_other_tenant_shift_untouched(self, db_session, supermarket, operator, other_supermarket, other_operator):
        theirs = shift_service.open_shift(other_supermarket.id, other_operator.id, 10000)
        shift_service.open_shift(supermarket.id, operator.id, 20000)

        db.session.refresh(theirs)
        assert theirs.status == SHIFT_OPEN

    def test_negative_opening_cash_rejected(self, db_session, supermarket, operator):
        with pytest.raises(ShiftError):
            shift_service.open_shift(supermarket.id, operator.id, -1)


class TestRecordSale:
    def test_sale_side_effects(self, db_session, supermarket, operator, products, open_shift):
        arroz, feijao, _ = products

        sale = shift_service.record_sale(open_shift, _cart((arroz, 1), (feijao, 2)), operator.id)

        assert sale.total_cents == 2599 + 2 * 899
        assert sale.points_awarded == 0
        db.session.refresh(arroz)
        db.session.refresh(feijao)
        assert arroz.stock == 49
        assert feijao.stock == 3

        entries = shift_service.list_shift_cash_flow(open_shift)
        assert [e.type for e in entries] == ["initial", "sale"]
        assert entries[1].amount_cents == sale.total_cents
        assert entries[1].sale_id == sale.id
        assert entries[1].description.startswith("Venda #")

    def test_total_recomputed_from_items(self, db_session, supermarket, operator, products, open_shift):
        sale = shift_service.record_sale(
            open_shift, [_item(products[2].id, 499, quantity=3, name="Leite 1L")], operator.id
        )
        assert sale.total_cents == 1497

    def test_items_stored_by_value(self, db_session, supermarket, operator, products, open_shift):
        arroz = products[0]
        sale = shift_service.record_sale(open_shift, _cart((arroz, 1)), operator.id)

        arroz.price_cents = 9999
        arroz.name = "Arroz Premium"
        db_session.commit()

        db.session.refresh(sale)
        assert sale.items[0]["price_cents"] == 2599
        assert sale.items[0]["name"] == "Arroz 5kg"

    def test_oversell_clamps_stock(self, db_session, supermarket, operator, products, open_shift):
        feijao = products[1]
        shift_service.record_sale(open_shift, _cart((feijao, 8)), operator.id)

        db.session.refresh(feijao)
        assert feijao.stock == 0

    def test_customer_points(self, db_session, supermarket, operator, products, customer, open_shift):
        other = Customer(supermarket_id=supermarket.id, name="Jose", national_id="98765432100", points=7)
        db_session.add(other)
        db_session.commit()

        # 2 x 25.99 = 51.98 -> 51 points with one point per real
        sale = shift_service.record_sale(
            open_shift, _cart((products[0], 2)), operator.id, customer_id=customer.id
        )

        db.session.refresh(customer)
        db.session.refresh(other)
        assert sale.points_awarded == 51
        assert customer.points == 51
        assert other.points == 7

    def test_sale_without_customer_leaves_points(self, db_session, supermarket, operator, products, customer, open_shift):
        shift_service.record_sale(open_shift, _cart((products[0], 2)), operator.id)
        db.session.refresh(customer)
        assert customer.points == 0

    def test_divisor_is_configurable(self, app, db_session, supermarket, operator, products, customer, open_shift, monkeypatch):
        monkeypatch.setitem(app.config, "LOYALTY_POINTS_DIVISOR", 10)
        sale = shift_service.record_sale(
            open_shift, _cart((products[0], 2)), operator.id, customer_id=customer.id
        )
        assert sale.points_awarded == 5

    def test_empty_cart_rejected(self, db_session, operator, open_shift):
        with pytest.raises(ValidationError):
            shift_service.record_sale(open_shift, [], operator.id)

    def test_foreign_customer_rolls_back(self, db_session, supermarket, operator, other_supermarket, products, open_shift):
        stranger = Customer(supermarket_id=other_supermarket.id, name="Outra", national_id="11122233344", points=0)
        db_session.add(stranger)
        db_session.commit()

        with pytest.raises(TenantAccessError):
            shift_service.record_sale(open_shift, _cart((products[0], 1)), operator.id, customer_id=stranger.id)

        assert db_session.query(Sale).count() == 0
        db.session.refresh(products[0])
        assert products[0].stock == 50

    def test_foreign_product_rolls_back(self, db_session, supermarket, operator, products, other_product, open_shift):
        lines = [
            _item(products[0].id, 2599, name="Arroz 5kg"),
            _item(other_product.id, 1599, name="Cafe 500g"),
        ]
        with pytest.raises(TenantAccessError):
            shift_service.record_sale(open_shift, lines, operator.id)

        assert db_session.query(Sale).count() == 0
        assert db_session.query(CashFlowEntry).filter_by(type="sale").count() == 0
        db.session.refresh(products[0])
        db.session.refresh(other_product)
        assert products[0].stock == 50
        assert other_product.stock == 20

    def test_closed_shift_rejects_sales(self, db_session, operator, products, open_shift):
        shift_service.close_shift(open_shift)
        with pytest.raises(ShiftClosedError):
            shift_service.record_sale(open_shift, _cart((products[0], 1)), operator.id)

    def test_shift_of_another_operator(self, db_session, supermarket, operator, products, open_shift, password_hash):
        from mercado.models import User, Role

        intruder = User(supermarket_id=supermarket.id, name="Outro", email="outro@central.com",
                        password_hash=password_hash, role=Role.OPERATOR)
        db_session.add(intruder)
        db_session.commit()

        with pytest.raises(ShiftError):
            shift_service.record_sale(open_shift, _cart((products[0], 1)), intruder.id)


class TestLoadCart:
    def test_prices_come_from_catalog(self, db_session, supermarket, products):
        cart = shift_service.load_cart(supermarket.id, [{"product_id": products[0].id, "quantity": 2}])
        assert cart.total_cents == 5198

    def test_other_tenant_product_is_unknown(self, db_session, supermarket, other_product):
        with pytest.raises(ValidationError):
            shift_service.load_cart(supermarket.id, [{"product_id": other_product.id, "quantity": 1}])


class TestCashWithdrawal:
    def test_stored_negative(self, db_session, operator, open_shift):
        entry = shift_service.record_cash_withdrawal(open_shift, "30.00", operator.id)

        assert entry.type == "sangria"
        assert entry.amount_cents == -3000
        assert entry.description == "Sangria do caixa"

    @pytest.mark.parametrize("amount", [0, -10, "abc", None, "", "1e30", 1e30])
    def test_invalid_amount_is_noop(self, db_session, operator, open_shift, amount):
        assert shift_service.record_cash_withdrawal(open_shift, amount, operator.id) is None
        assert len(shift_service.list_shift_cash_flow(open_shift)) == 1

    def test_closed_shift_rejects_withdrawal(self, db_session, operator, open_shift):
        shift_service.close_shift(open_shift)
        with pytest.raises(ShiftClosedError):
            shift_service.record_cash_withdrawal(open_shift, 10, operator.id)


class TestCloseShift:
    def test_report_totals(self, db_session, operator, open_shift):
        from mercado.models import Product

        product = Product(supermarket_id=open_shift.supermarket_id, name="Cesta", price_cents=4550, stock=10)
        db_session.add(product)
        db_session.commit()

        shift_service.record_sale(open_shift, _cart((product, 1)), operator.id)
        shift_service.record_cash_withdrawal(open_shift, 30, operator.id)

        report = shift_service.close_shift(open_shift)

        assert report.initial_cash_cents == 20000
        assert report.total_sales_cents == 4550
        assert report.total_sangria_cents == 3000
        assert report.final_cash_cents == 21550
        assert len(report.sales) == 1
        assert [e["type"] for e in report.cash_flow] == ["initial", "sale", "sangria"]

    def test_no_sales_final_equals_initial(self, db_session, open_shift):
        report = shift_service.close_shift(open_shift)
        assert report.total_sales_cents == 0
        assert report.final_cash_cents == report.initial_cash_cents == 20000

    def test_total_sales_matches_sum_of_sales(self, db_session, operator, products, open_shift):
        for product, qty in ((products[0], 1), (products[1], 3), (products[2], 2)):
            shift_service.record_sale(open_shift, _cart((product, qty)), operator.id)

        expected = sum(s.total_cents for s in shift_service.list_shift_sales(open_shift))
        report = shift_service.close_shift(open_shift)
        assert report.total_sales_cents == expected

    def test_marks_shift_closed_and_logs_out(self, db_session, operator, open_shift):
        create_session(operator)
        report = shift_service.close_shift(open_shift)

        assert open_shift.status == SHIFT_CLOSED
        assert open_shift.closed_at is not None
        assert open_shift.daily_report_id == report.id
        active = db_session.query(SessionToken).filter_by(user_id=operator.id, is_revoked=False).count()
        assert active == 0

    def test_report_date_format(self, db_session, open_shift):
        from datetime import datetime

        report = shift_service.close_shift(open_shift, report_date=datetime(2026, 3, 7, 18, 0))
        assert report.date == "07/03/2026"

    def test_close_twice(self, db_session, open_shift):
        shift_service.close_shift(open_shift)
        with pytest.raises(ShiftClosedError):
            shift_service.close_shift(open_shift)
        assert db_session.query(DailyReport).count() == 1
