"""
Shift, Sale Settlement and Cash Drawer Service

Persisted side of the ledger engine. One register per supermarket: opening
a shift supersedes any shift still open for the tenant.

SALE COMMIT (single database transaction):
1. append the Sale (items by value, total recomputed server-side)
2. decrement stock of every line, clamped at zero
3. award loyalty points when a customer is attached
4. append a `sale` cash-flow entry for the total

Any failure rolls the whole sale back.

SHIFT LIFECYCLE:
- OPEN (operator login) -> CLOSED (close_shift, report produced)
- OPEN -> SUPERSEDED (another operator login)
"""

from __future__ import annotations

import logging
from datetime import datetime, date as date_cls

from flask import current_app

from ..extensions import db
from ..models import (
    Shift,
    Sale,
    CashFlowEntry,
    DailyReport,
    Product,
    SHIFT_OPEN,
    SHIFT_CLOSED,
    SHIFT_SUPERSEDED,
)
from ..validation import ValidationError, parse_money_cents
from mercado.time_utils import utcnow, business_date
from . import ledger
from .cart import Cart
from .customers_service import get_customer, increment_points
from .products_service import decrement_product_stock
from .session_service import revoke_all_user_sessions

logger = logging.getLogger(__name__)


class ShiftError(Exception):
    """Raised for shift management errors."""
    pass


class ShiftClosedError(ShiftError):
    """Raised when writing to a shift that is no longer OPEN."""
    pass


# =============================================================================
# SHIFT LIFECYCLE
# =============================================================================

def open_shift(
    supermarket_id: int,
    operator_id: int,
    opening_cash_cents: int,
    commit: bool = True,
) -> Shift:
    """
    Open a fresh shift for an operator.

    Every other OPEN shift of the supermarket becomes SUPERSEDED, so the
    new shift starts with no sales and exactly one `initial` entry.
    """
    if isinstance(opening_cash_cents, bool) or not isinstance(opening_cash_cents, int) or opening_cash_cents < 0:
        raise ShiftError("Opening cash must be a non-negative amount")

    superseded = db.session.query(Shift).filter(
        Shift.supermarket_id == supermarket_id,
        Shift.status == SHIFT_OPEN,
    ).update({"status": SHIFT_SUPERSEDED})

    now = utcnow()
    shift = Shift(
        supermarket_id=supermarket_id,
        operator_id=operator_id,
        status=SHIFT_OPEN,
        opened_at=now,
    )
    db.session.add(shift)
    db.session.flush()

    db.session.add(CashFlowEntry(
        supermarket_id=supermarket_id,
        shift_id=shift.id,
        operator_id=operator_id,
        type=ledger.CASH_FLOW_INITIAL,
        amount_cents=opening_cash_cents,
        timestamp=now,
        description=ledger.INITIAL_DESCRIPTION,
    ))

    if commit:
        db.session.commit()
    else:
        db.session.flush()

    logger.info(
        "Opened shift %s for operator %s (supermarket %s, superseded %s)",
        shift.id, operator_id, supermarket_id, superseded,
    )
    return shift


def get_open_shift(supermarket_id: int, operator_id: int) -> Shift | None:
    return db.session.query(Shift).filter(
        Shift.supermarket_id == supermarket_id,
        Shift.operator_id == operator_id,
        Shift.status == SHIFT_OPEN,
    ).order_by(Shift.id.desc()).first()


def require_open_shift(supermarket_id: int, operator_id: int) -> Shift:
    shift = get_open_shift(supermarket_id, operator_id)
    if shift is None:
        raise ShiftError("No open shift. Log in again to open the register.")
    return shift


def _ensure_open(shift: Shift) -> None:
    if shift.status != SHIFT_OPEN:
        raise ShiftClosedError(f"Shift {shift.id} is {shift.status}")


def list_shift_sales(shift: Shift) -> list[Sale]:
    return db.session.query(Sale).filter(Sale.shift_id == shift.id).order_by(Sale.id.asc()).all()


def list_shift_cash_flow(shift: Shift) -> list[CashFlowEntry]:
    return (
        db.session.query(CashFlowEntry)
        .filter(CashFlowEntry.shift_id == shift.id)
        .order_by(CashFlowEntry.id.asc())
        .all()
    )


def shift_summary(shift: Shift) -> dict:
    """Live totals of a shift without closing it."""
    sales = list_shift_sales(shift)
    cash_flow = list_shift_cash_flow(shift)
    totals = ledger.compute_shift_totals(sales, cash_flow)
    return {
        "shift": shift.to_dict(),
        "totals": totals.to_dict(),
        "sales_count": len(sales),
        "sales": [s.to_dict() for s in sales],
        "cash_flow": [e.to_dict() for e in cash_flow],
    }


# =============================================================================
# SALES
# =============================================================================

def load_cart(supermarket_id: int, lines) -> Cart:
    """Resolve request lines against the tenant catalog (current prices)."""
    if not isinstance(lines, list):
        raise ValidationError("items must be a list")
    ids = {line.get("product_id") for line in lines if isinstance(line, dict)}
    ids = {i for i in ids if isinstance(i, int) and not isinstance(i, bool)}
    products = {}
    if ids:
        products = {
            p.id: p
            for p in db.session.query(Product).filter(
                Product.supermarket_id == supermarket_id,
                Product.id.in_(ids),
            )
        }
    return Cart.from_lines(products, lines)


def record_sale(
    shift: Shift,
    cart_items,
    operator_id: int,
    customer_id: int | None = None,
) -> Sale:
    """
    Commit a sale and its side effects atomically.

    cart_items: CartItem objects or dicts with id, name, price_cents,
    image_url, quantity. The total is always recomputed from them.

    Raises:
        ValidationError: empty cart or malformed line
        ShiftClosedError: shift is not OPEN
        TenantAccessError: product or customer outside the shift's supermarket
    """
    _ensure_open(shift)
    if shift.operator_id != operator_id:
        raise ShiftError("Shift belongs to another operator")

    items = [item.to_dict() if hasattr(item, "to_dict") else dict(item) for item in cart_items or []]
    if not items:
        raise ValidationError("Cart is empty")
    for item in items:
        if isinstance(item.get("id"), bool) or not isinstance(item.get("id"), int):
            raise ValidationError("each item needs a product id")
        qty = item.get("quantity")
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise ValidationError("quantity must be a positive integer")
        if not isinstance(item.get("price_cents"), int) or item["price_cents"] < 0:
            raise ValidationError("price_cents must be a non-negative integer")

    supermarket_id = shift.supermarket_id
    total_cents = ledger.cart_total(items)
    divisor = current_app.config["LOYALTY_POINTS_DIVISOR"]

    try:
        customer = None
        if customer_id is not None:
            customer = get_customer(supermarket_id, customer_id)

        now = utcnow()
        sale = Sale(
            supermarket_id=supermarket_id,
            shift_id=shift.id,
            operator_id=operator_id,
            customer_id=customer.id if customer else None,
            items=items,
            total_cents=total_cents,
            points_awarded=0,
            timestamp=now,
        )
        db.session.add(sale)
        db.session.flush()

        for item in items:
            decrement_product_stock(supermarket_id, item["id"], item["quantity"], commit=False)

        if customer is not None:
            points = ledger.loyalty_points(total_cents, divisor)
            increment_points(supermarket_id, customer.id, points, commit=False)
            sale.points_awarded = points

        db.session.add(CashFlowEntry(
            supermarket_id=supermarket_id,
            shift_id=shift.id,
            operator_id=operator_id,
            type=ledger.CASH_FLOW_SALE,
            amount_cents=total_cents,
            sale_id=sale.id,
            timestamp=now,
            description=f"Venda #{now.strftime('%H:%M')}",
        ))

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Sale %s committed on shift %s: total=%s cents, points=%s",
        sale.id, shift.id, total_cents, sale.points_awarded,
    )
    return sale


# =============================================================================
# CASH DRAWER
# =============================================================================

def record_cash_withdrawal(shift: Shift, amount, operator_id: int) -> CashFlowEntry | None:
    """
    Sangria: remove cash from the drawer.

    Returns None without writing anything when the amount is not a number
    or is not positive. The stored amount is negative.
    """
    try:
        amount_cents = parse_money_cents(amount, "amount")
    except ValidationError:
        return None
    if amount_cents <= 0:
        return None

    _ensure_open(shift)

    entry = CashFlowEntry(
        supermarket_id=shift.supermarket_id,
        shift_id=shift.id,
        operator_id=operator_id,
        type=ledger.CASH_FLOW_SANGRIA,
        amount_cents=-amount_cents,
        timestamp=utcnow(),
        description=ledger.SANGRIA_DESCRIPTION,
    )
    db.session.add(entry)
    db.session.commit()

    logger.info("Sangria of %s cents on shift %s", amount_cents, shift.id)
    return entry


# =============================================================================
# CLOSING
# =============================================================================

def _report_date(value: datetime | date_cls | None) -> str:
    if value is None:
        return business_date()
    return value.strftime("%d/%m/%Y")


def close_shift(shift: Shift, report_date: datetime | None = None) -> DailyReport:
    """
    Close an OPEN shift into a DailyReport.

    The report snapshots the shift's sales and cash flow. The operator's
    sessions are revoked (the caller is logged out). A shift without sales
    is valid and reports final cash == initial cash.
    """
    _ensure_open(shift)

    sales = list_shift_sales(shift)
    cash_flow = list_shift_cash_flow(shift)
    totals = ledger.compute_shift_totals(sales, cash_flow)

    try:
        now = utcnow()
        report = DailyReport(
            supermarket_id=shift.supermarket_id,
            shift_id=shift.id,
            operator_id=shift.operator_id,
            date=_report_date(report_date or now),
            total_sales_cents=totals.total_sales_cents,
            initial_cash_cents=totals.initial_cash_cents,
            total_sangria_cents=totals.total_sangria_cents,
            final_cash_cents=totals.final_cash_cents,
            sales=[s.to_dict() for s in sales],
            cash_flow=[e.to_dict() for e in cash_flow],
            created_at=now,
        )
        db.session.add(report)
        db.session.flush()

        shift.status = SHIFT_CLOSED
        shift.closed_at = now
        shift.daily_report_id = report.id

        revoke_all_user_sessions(shift.operator_id, reason="Shift closed", commit=False)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Closed shift %s: sales=%s cents, final cash=%s cents",
        shift.id, totals.total_sales_cents, totals.final_cash_cents,
    )
    return report
