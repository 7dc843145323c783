# backend/mercado/services/customers_service.py
"""
Customers Service (loyalty program)

MULTI-TENANT: CPF uniqueness is per supermarket.

STORE PROCEDURES:
- increment_points: row-locked point accrual used by the sale commit
"""
from __future__ import annotations

import logging

from sqlalchemy import func

from ..extensions import db
from ..models import Customer
from ..validation import ConflictError, ValidationError
from .concurrency import lock_for_update
from .tenant_service import require_in_tenant, TenantAccessError

logger = logging.getLogger(__name__)

CUSTOMER_MUTABLE_FIELDS = {"name", "national_id"}


def normalize_national_id(value) -> str:
    """CPF as digits only ("123.456.789-00" -> "12345678900")."""
    if value is None:
        return ""
    return "".join(ch for ch in str(value) if ch.isdigit())


def _ensure_national_id_free(supermarket_id: int, national_id: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Customer.id).filter(
        Customer.supermarket_id == supermarket_id,
        Customer.national_id == national_id,
    )
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("CPF já cadastrado.")


def list_customers(supermarket_id: int, search: str | None = None) -> list[Customer]:
    query = db.session.query(Customer).filter(Customer.supermarket_id == supermarket_id)
    if search:
        term = search.strip().lower()
        digits = normalize_national_id(search)
        condition = func.lower(Customer.name).contains(term)
        if digits:
            condition = db.or_(condition, Customer.national_id.contains(digits))
        query = query.filter(condition)
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer(supermarket_id: int, customer_id: int) -> Customer:
    return require_in_tenant(Customer, customer_id, supermarket_id, label="Customer")


def find_by_national_id(supermarket_id: int, national_id) -> Customer | None:
    digits = normalize_national_id(national_id)
    if not digits:
        return None
    return db.session.query(Customer).filter(
        Customer.supermarket_id == supermarket_id,
        Customer.national_id == digits,
    ).first()


def create_customer(supermarket_id: int, patch: dict) -> Customer:
    """Create a customer with zero points. Duplicate CPF -> ConflictError."""
    _ensure_national_id_free(supermarket_id, patch["national_id"])

    c = Customer(supermarket_id=supermarket_id, name=patch["name"], national_id=patch["national_id"], points=0)
    db.session.add(c)
    db.session.commit()
    return c


def update_customer(supermarket_id: int, customer_id: int, patch: dict) -> Customer:
    """Rename or change the CPF. Points are never writable here."""
    c = get_customer(supermarket_id, customer_id)

    if "national_id" in patch and patch["national_id"] != c.national_id:
        _ensure_national_id_free(supermarket_id, patch["national_id"], exclude_id=c.id)

    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(c, k, v)

    db.session.commit()
    return c


def increment_points(supermarket_id: int, customer_id: int, points: int, commit: bool = True) -> Customer:
    """
    Store procedure: add points to a locked customer row.

    Points only grow; negative values are rejected.
    """
    if isinstance(points, bool) or not isinstance(points, int) or points < 0:
        raise ValidationError("points must be a non-negative integer")

    c = lock_for_update(
        db.session.query(Customer).filter(Customer.id == customer_id)
    ).first()
    if c is None or c.supermarket_id != supermarket_id:
        raise TenantAccessError("Customer not found")

    c.points = (c.points or 0) + points

    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return c
