# Overview: Pytest coverage for report aggregates and the owner dashboard.

import pytest

from mercado.services import reporting_service, shift_service
from mercado.services.cart import Cart
from mercado.services.tenant_service import TenantAccessError


def _snapshot(total_cents, timestamp, operator_id=1, items=None):
    return {
        "total_cents": total_cents,
        "timestamp": timestamp,
        "operator_id": operator_id,
        "items": items or [],
    }


def _line(product_id, name, quantity):
    return {"id": product_id, "name": name, "price_cents": 100, "quantity": quantity}


class TestSalesByHour:
    def test_always_24_buckets(self):
        buckets = reporting_service.sales_by_hour([])
        assert len(buckets) == 24
        assert buckets[0]["hour"] == "0:00"
        assert buckets[23]["hour"] == "23:00"
        assert all(b["total_cents"] == 0 for b in buckets)

    def test_sums_per_hour(self):
        sales = [
            _snapshot(1000, "2026-03-07T09:15:00Z"),
            _snapshot(550, "2026-03-07T09:59:59Z"),
            _snapshot(200, "2026-03-07T17:00:00Z"),
        ]
        buckets = reporting_service.sales_by_hour(sales)
        assert buckets[9]["total_cents"] == 1550
        assert buckets[9]["total"] == "15.50"
        assert buckets[17]["total_cents"] == 200
        assert sum(b["total_cents"] for b in buckets) == 1750

    def test_missing_timestamp_skipped(self):
        buckets = reporting_service.sales_by_hour([_snapshot(900, None)])
        assert sum(b["total_cents"] for b in buckets) == 0


class TestTopProducts:
    def test_ranked_by_quantity(self):
        sales = [
            _snapshot(0, None, items=[_line(1, "Arroz", 2), _line(2, "Leite", 1)]),
            _snapshot(0, None, items=[_line(2, "Leite", 5), _line(3, "Pao", 1)]),
        ]
        top = reporting_service.top_products(sales)
        assert [(t["name"], t["quantity"]) for t in top] == [("Leite", 6), ("Arroz", 2), ("Pao", 1)]

    def test_limit(self):
        sales = [_snapshot(0, None, items=[_line(i, f"P{i}", 1) for i in range(8)])]
        assert len(reporting_service.top_products(sales)) == 5
        assert len(reporting_service.top_products(sales, limit=2)) == 2


class TestOperatorPerformance:
    def test_totals_and_unknown_operator(self):
        sales = [
            _snapshot(1000, None, operator_id=1),
            _snapshot(3000, None, operator_id=2),
            _snapshot(500, None, operator_id=1),
            _snapshot(700, None, operator_id=99),
        ]
        operators = [{"id": 1, "name": "Bruno"}, {"id": 2, "name": "Clara"}]

        rows = reporting_service.operator_performance(sales, operators)

        assert [(r["name"], r["total_cents"]) for r in rows] == [
            ("Clara", 3000),
            ("Bruno", 1500),
            (reporting_service.UNKNOWN_OPERATOR, 700),
        ]
        assert rows[1]["total"] == "15.00"


class TestReportQueries:
    def test_list_newest_first(self, db_session, supermarket, operator):
        first = shift_service.close_shift(shift_service.open_shift(supermarket.id, operator.id, 0))
        second = shift_service.close_shift(shift_service.open_shift(supermarket.id, operator.id, 0))

        reports = reporting_service.list_reports(supermarket.id)
        assert [r.id for r in reports] == [second.id, first.id]
        assert reporting_service.latest_report(supermarket.id).id == second.id
        assert len(reporting_service.list_reports(supermarket.id, limit=1)) == 1

    def test_get_report_other_tenant(self, db_session, supermarket, other_supermarket, other_operator):
        report = shift_service.close_shift(shift_service.open_shift(other_supermarket.id, other_operator.id, 0))
        with pytest.raises(TenantAccessError):
            reporting_service.get_report(supermarket.id, report.id)

    def test_latest_report_none(self, db_session, supermarket):
        assert reporting_service.latest_report(supermarket.id) is None

    def test_todays_sales(self, db_session, supermarket, operator, products, open_shift):
        cart = Cart()
        cart.add(products[0], 1)
        sale = shift_service.record_sale(open_shift, cart.items, operator.id)

        assert [s.id for s in reporting_service.todays_sales(supermarket.id)] == [sale.id]


class TestDashboard:
    def test_empty_dashboard(self, client, owner_headers, products):
        resp = client.get("/api/reports/dashboard", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.json["report"] is None
        assert [p["name"] for p in resp.json["low_stock"]] == ["Feijao 1kg"]
        assert len(resp.json["sales_by_hour"]) == 24
        assert resp.json["top_products"] == []
        assert resp.json["operator_performance"] == []

    def test_dashboard_uses_latest_report(self, client, owner_headers, operator, products, open_shift):
        cart = Cart()
        cart.add(products[2], 3)
        shift_service.record_sale(open_shift, cart.items, operator.id)
        shift_service.close_shift(open_shift)

        resp = client.get("/api/reports/dashboard", headers=owner_headers)
        data = resp.json
        assert data["report"]["total_sales_cents"] == 1497
        assert data["top_products"] == [{"product_id": products[2].id, "name": "Leite 1L", "quantity": 3}]
        assert data["operator_performance"][0]["name"] == "Caixa Bruno"
        assert sum(b["total_cents"] for b in data["sales_by_hour"]) == 1497

    def test_report_routes(self, client, owner_headers, open_shift):
        report = shift_service.close_shift(open_shift)

        listing = client.get("/api/reports?limit=5", headers=owner_headers)
        assert listing.json["count"] == 1
        assert listing.json["items"][0]["id"] == report.id

        assert client.get(f"/api/reports/{report.id}", headers=owner_headers).json["date"] == report.date
        assert client.get("/api/reports/999999", headers=owner_headers).status_code == 404
