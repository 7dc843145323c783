# backend/mercado/services/products_service.py
"""
Products Service

MULTI-TENANT: Every product operation takes the caller's supermarket_id and
resolves ids through require_in_tenant.

STORE PROCEDURES:
- decrement_product_stock: row-locked, zero-floored stock decrement used by
  the sale commit (oversell never raises)
"""
from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Product
from ..validation import ConflictError, ValidationError
from .concurrency import lock_for_update
from .ledger import decrement_stock
from .tenant_service import require_in_tenant, TenantAccessError

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {"name", "price_cents", "stock", "image_url", "low_stock_threshold", "barcode"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_barcode_free(supermarket_id: int, barcode: str | None, exclude_id: int | None = None) -> None:
    if not barcode:
        return
    query = db.session.query(Product.id).filter(
        Product.supermarket_id == supermarket_id,
        Product.barcode == barcode,
    )
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Barcode already used by another product.")


def list_products(supermarket_id: int, search: str | None = None) -> list[Product]:
    """Tenant products ordered by name; optional case-insensitive name search."""
    query = db.session.query(Product).filter(Product.supermarket_id == supermarket_id)
    if search:
        query = query.filter(func.lower(Product.name).contains(search.strip().lower()))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(supermarket_id: int, product_id: int) -> Product:
    return require_in_tenant(Product, product_id, supermarket_id, label="Product")


def find_by_barcode(supermarket_id: int, code: str) -> Product | None:
    """
    Scanner lookup: exact barcode match first, then the product id when the
    code is numeric.
    """
    code = (code or "").strip()
    if not code:
        return None

    product = db.session.query(Product).filter(
        Product.supermarket_id == supermarket_id,
        Product.barcode == code,
    ).first()
    if product is not None:
        return product

    if code.isdigit():
        try:
            return get_product(supermarket_id, int(code))
        except TenantAccessError:
            return None
    return None


def create_product(supermarket_id: int, patch: dict) -> Product:
    """
    Create a product from a validated patch.

    low_stock_threshold defaults to DEFAULT_LOW_STOCK_THRESHOLD when absent.
    """
    _ensure_barcode_free(supermarket_id, patch.get("barcode"))

    p = Product(supermarket_id=supermarket_id, stock=0, price_cents=0)
    apply_product_patch(p, patch)
    if p.low_stock_threshold is None:
        p.low_stock_threshold = current_app.config["DEFAULT_LOW_STOCK_THRESHOLD"]

    db.session.add(p)
    db.session.commit()
    logger.info("Created product %s in supermarket %s", p.id, supermarket_id)
    return p


def update_product(supermarket_id: int, product_id: int, patch: dict) -> Product:
    p = get_product(supermarket_id, product_id)

    if "barcode" in patch and patch["barcode"] != p.barcode:
        _ensure_barcode_free(supermarket_id, patch["barcode"], exclude_id=p.id)

    apply_product_patch(p, patch)
    db.session.commit()
    return p


def delete_product(supermarket_id: int, product_id: int) -> None:
    """
    Hard delete. Sales keep their own item snapshots, so history is
    unaffected.
    """
    p = get_product(supermarket_id, product_id)
    db.session.delete(p)
    db.session.commit()
    logger.info("Deleted product %s from supermarket %s", product_id, supermarket_id)


def decrement_product_stock(supermarket_id: int, product_id: int, quantity: int, commit: bool = True) -> Product:
    """
    Store procedure: stock = max(0, stock - quantity) on a locked row.

    Raises TenantAccessError for products outside the tenant and
    ValidationError for a non-positive quantity.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")

    p = lock_for_update(
        db.session.query(Product).filter(Product.id == product_id)
    ).first()
    if p is None or p.supermarket_id != supermarket_id:
        raise TenantAccessError("Product not found")

    before = p.stock
    p.stock = decrement_stock(p.stock, quantity)
    if quantity > before:
        logger.warning(
            "Oversell on product %s: stock %s, sold %s (clamped to 0)",
            product_id, before, quantity,
        )

    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return p


def low_stock_products(supermarket_id: int) -> list[Product]:
    """Products whose stock is below their own threshold, lowest stock first."""
    return (
        db.session.query(Product)
        .filter(
            Product.supermarket_id == supermarket_id,
            Product.stock < Product.low_stock_threshold,
        )
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )
