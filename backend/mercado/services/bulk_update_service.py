"""
Bulk product update engine.

Applies one price directive and/or one stock directive to a set of
products of the caller's supermarket in a single commit.

PRICE OPERATIONS: set, increase_value, decrease_value, increase_percent,
decrease_percent. Results are rounded half-up to the cent and clamped at 0.

STOCK OPERATIONS: set, increase_value, decrease_value. Values are floored
to integers; results are clamped at 0.

Every directive is validated before any row is touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, ROUND_FLOOR

from ..extensions import db
from ..models import Product
from ..validation import ValidationError, to_decimal, MAX_PRICE_CENTS

logger = logging.getLogger(__name__)

PRICE_OPERATIONS = ("set", "increase_value", "decrease_value", "increase_percent", "decrease_percent")
STOCK_OPERATIONS = ("set", "increase_value", "decrease_value")

_HUNDRED = Decimal(100)


class BulkUpdateError(ValidationError):
    """Malformed bulk update request."""
    pass


@dataclass(frozen=True)
class Directive:
    operation: str
    value: Decimal


def _parse_directive(raw, field: str, allowed: tuple[str, ...]) -> Directive | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise BulkUpdateError(f"{field} must be an object with operation and value")

    operation = raw.get("operation")
    if operation not in allowed:
        raise BulkUpdateError(f"{field}.operation must be one of: {', '.join(allowed)}")

    try:
        value = to_decimal(raw.get("value"), f"{field}.value")
    except ValidationError as e:
        raise BulkUpdateError(str(e))
    if value < 0:
        raise BulkUpdateError(f"{field}.value must be >= 0")
    return Directive(operation=operation, value=value)


def parse_price_directive(raw) -> Directive | None:
    """Price value is in currency units for *_value and set, percent otherwise."""
    return _parse_directive(raw, "price", PRICE_OPERATIONS)


def parse_stock_directive(raw) -> Directive | None:
    """Fractional values are accepted; apply_stock floors them."""
    return _parse_directive(raw, "stock", STOCK_OPERATIONS)


def apply_price(price_cents: int, directive: Directive) -> int:
    """
    New price in cents.

    >>> apply_price(1000, Directive("increase_percent", Decimal(20)))
    1200
    """
    current = Decimal(price_cents)
    op = directive.operation
    if op == "set":
        new = directive.value * _HUNDRED
    elif op == "increase_value":
        new = current + directive.value * _HUNDRED
    elif op == "decrease_value":
        new = current - directive.value * _HUNDRED
    elif op == "increase_percent":
        new = current * (_HUNDRED + directive.value) / _HUNDRED
    elif op == "decrease_percent":
        new = current * (_HUNDRED - directive.value) / _HUNDRED
    else:
        raise BulkUpdateError(f"Unknown price operation: {op}")

    cents = int(new.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return min(max(0, cents), MAX_PRICE_CENTS)


def apply_stock(stock: int, directive: Directive) -> int:
    """New stock, floored to an integer and clamped at 0."""
    amount = int(directive.value.to_integral_value(rounding=ROUND_FLOOR))
    op = directive.operation
    if op == "set":
        new = amount
    elif op == "increase_value":
        new = stock + amount
    elif op == "decrease_value":
        new = stock - amount
    else:
        raise BulkUpdateError(f"Unknown stock operation: {op}")
    return max(0, new)


def _parse_ids(raw) -> list[int]:
    if not isinstance(raw, list) or not raw:
        raise BulkUpdateError("product_ids must be a non-empty list")
    ids = []
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, int):
            raise BulkUpdateError("product_ids must contain integer ids")
        ids.append(value)
    return ids


def bulk_update(supermarket_id: int, payload: dict) -> dict:
    """
    Apply {"product_ids": [...], "price": {...}?, "stock": {...}?}.

    Ids of other supermarkets (or unknown ids) are ignored. With no
    directive nothing is written. Returns {"updated": n, "products": [...]}.
    """
    if not isinstance(payload, dict):
        raise BulkUpdateError("Invalid JSON payload")

    ids = _parse_ids(payload.get("product_ids"))
    price = parse_price_directive(payload.get("price"))
    stock = parse_stock_directive(payload.get("stock"))

    if price is None and stock is None:
        return {"updated": 0, "products": []}

    products = (
        db.session.query(Product)
        .filter(Product.supermarket_id == supermarket_id, Product.id.in_(set(ids)))
        .order_by(Product.id.asc())
        .all()
    )

    for p in products:
        if price is not None:
            p.price_cents = apply_price(p.price_cents, price)
        if stock is not None:
            p.stock = apply_stock(p.stock, stock)

    db.session.commit()

    logger.info(
        "Bulk update on supermarket %s: %d product(s), price=%s, stock=%s",
        supermarket_id, len(products),
        price.operation if price else None,
        stock.operation if stock else None,
    )
    return {"updated": len(products), "products": [p.to_dict() for p in products]}
