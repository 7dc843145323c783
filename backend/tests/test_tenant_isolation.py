# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-tenant access is denied for core resources.

These tests create two supermarkets with separate users and data, then
verify that:
1. A user of supermarket A cannot read/write data of supermarket B
2. Foreign ids answer 404 (same as missing ids, existence is not revealed)
3. Listings only ever contain the caller's own rows
4. Cross-tenant attempts are logged
"""

import logging

import pytest

from mercado.extensions import db
from mercado.models import Product, Customer
from mercado.services.tenant_service import (
    require_in_tenant,
    TenantAccessError,
)
from mercado.services import shift_service
from mercado.services.cart import Cart

from conftest import auth_headers, get_auth_token


class TestTenantServiceHelpers:
    """Test tenant_service helper functions."""

    def test_require_in_tenant_valid(self, db_session, supermarket, products):
        result = require_in_tenant(Product, products[0].id, supermarket.id)
        assert result.id == products[0].id

    def test_require_in_tenant_cross_tenant(self, db_session, supermarket, other_product):
        with pytest.raises(TenantAccessError) as exc:
            require_in_tenant(Product, other_product.id, supermarket.id, label="Product")
        assert str(exc.value) == "Product not found"

    def test_require_in_tenant_nonexistent(self, db_session, supermarket):
        with pytest.raises(TenantAccessError):
            require_in_tenant(Product, 99999, supermarket.id)

    def test_cross_tenant_access_is_logged(self, db_session, supermarket, other_product, caplog):
        with caplog.at_level(logging.WARNING, logger="mercado.services.tenant_service"):
            with pytest.raises(TenantAccessError):
                require_in_tenant(Product, other_product.id, supermarket.id)
        assert "Cross-tenant access attempt" in caplog.text


class TestProductIsolation:
    def test_list_only_own_products(self, client, owner_headers, products, other_product):
        resp = client.get("/api/products", headers=owner_headers)
        ids = {p["id"] for p in resp.json["items"]}
        assert other_product.id not in ids
        assert ids == {p.id for p in products}

    @pytest.mark.parametrize("method", ["get", "put", "delete"])
    def test_foreign_product_is_404(self, client, owner_headers, other_product, method):
        kwargs = {"json": {"price_cents": 1}} if method == "put" else {}
        resp = getattr(client, method)(f"/api/products/{other_product.id}", headers=owner_headers, **kwargs)
        assert resp.status_code == 404

        db.session.expire_all()
        product = db.session.get(Product, other_product.id)
        assert product is not None
        assert product.price_cents == 1599

    def test_foreign_barcode_lookup(self, client, operator_headers, other_product):
        resp = client.get(f"/api/products/barcode/{other_product.id}", headers=operator_headers)
        assert resp.status_code == 404

    def test_foreign_product_cannot_be_sold(self, client, operator_headers, other_product):
        resp = client.post("/api/pos/sales", headers=operator_headers, json={
            "items": [{"product_id": other_product.id, "quantity": 1}],
        })
        assert resp.status_code == 400
        db.session.expire_all()
        assert db.session.get(Product, other_product.id).stock == 20


class TestCustomerIsolation:
    def test_same_cpf_allowed_in_two_supermarkets(self, db_session, customer, other_supermarket):
        twin = Customer(supermarket_id=other_supermarket.id, name="Maria B", national_id=customer.national_id)
        db_session.add(twin)
        db_session.commit()
        assert twin.id != customer.id

    def test_lookup_does_not_cross(self, client, other_owner, customer):
        headers = auth_headers(get_auth_token(client, other_owner.email))
        resp = client.get(f"/api/customers/lookup?cpf={customer.national_id}", headers=headers)
        assert resp.status_code == 404

    def test_foreign_customer_on_sale(self, client, operator_headers, products, other_supermarket):
        stranger = Customer(supermarket_id=other_supermarket.id, name="Outra", national_id="55566677788")
        db.session.add(stranger)
        db.session.commit()

        resp = client.post("/api/pos/sales", headers=operator_headers, json={
            "items": [{"product_id": products[0].id, "quantity": 1}],
            "customer_id": stranger.id,
        })
        assert resp.status_code == 404
        db.session.expire_all()
        assert db.session.get(Customer, stranger.id).points == 0


class TestShiftIsolation:
    def test_login_only_supersedes_own_tenant(self, client, operator_headers, other_supermarket, other_operator):
        theirs = shift_service.open_shift(other_supermarket.id, other_operator.id, 5000)

        get_auth_token(client, "bruno@central.com")

        db.session.refresh(theirs)
        assert theirs.is_open

    def test_foreign_sale_receipt(self, client, other_supermarket, other_operator, other_product, owner_headers):
        shift = shift_service.open_shift(other_supermarket.id, other_operator.id, 0)
        cart = Cart()
        cart.add(other_product, 1)
        sale = shift_service.record_sale(shift, cart.items, other_operator.id)

        resp = client.get(f"/api/pos/sales/{sale.id}/receipt", headers=owner_headers)
        assert resp.status_code == 404


class TestReportIsolation:
    def test_reports_do_not_cross(self, client, owner_headers, other_supermarket, other_operator):
        shift = shift_service.open_shift(other_supermarket.id, other_operator.id, 1000)
        report = shift_service.close_shift(shift)

        assert client.get("/api/reports", headers=owner_headers).json["count"] == 0
        assert client.get(f"/api/reports/{report.id}", headers=owner_headers).status_code == 404
