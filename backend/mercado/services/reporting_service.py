# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

"""
Daily report access and owner dashboard aggregates.

The aggregate helpers work on sale snapshots (the dicts stored inside a
DailyReport) as well as on live Sale rows.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from ..extensions import db
from ..models import DailyReport, Role, Sale, User
from mercado.time_utils import parse_iso_datetime, utcnow
from mercado.validation import money_str
from .products_service import low_stock_products
from .tenant_service import require_in_tenant

UNKNOWN_OPERATOR = "Desconhecido"


def _sale_dict(sale) -> dict:
    return sale if isinstance(sale, dict) else sale.to_dict()


def _sale_time(sale: dict) -> datetime | None:
    value = sale.get("timestamp")
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return parse_iso_datetime(value)
    return None


# =============================================================================
# REPORTS
# =============================================================================

def list_reports(supermarket_id: int, limit: int | None = None) -> list[DailyReport]:
    query = (
        db.session.query(DailyReport)
        .filter(DailyReport.supermarket_id == supermarket_id)
        .order_by(DailyReport.created_at.desc(), DailyReport.id.desc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def get_report(supermarket_id: int, report_id: int) -> DailyReport:
    return require_in_tenant(DailyReport, report_id, supermarket_id, label="Report")


def latest_report(supermarket_id: int) -> DailyReport | None:
    reports = list_reports(supermarket_id, limit=1)
    return reports[0] if reports else None


def todays_sales(supermarket_id: int, now: datetime | None = None) -> list[Sale]:
    """Live sales since midnight (UTC) across all shifts of the supermarket."""
    now = now or utcnow()
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return (
        db.session.query(Sale)
        .filter(Sale.supermarket_id == supermarket_id, Sale.timestamp >= start)
        .order_by(Sale.timestamp.asc(), Sale.id.asc())
        .all()
    )


# =============================================================================
# AGGREGATES
# =============================================================================

def sales_by_hour(sales: Iterable) -> list[dict]:
    """24 buckets (0:00 .. 23:00) of summed sale totals."""
    buckets = [0] * 24
    for sale in sales:
        sale = _sale_dict(sale)
        ts = _sale_time(sale)
        if ts is None:
            continue
        buckets[ts.hour] += int(sale.get("total_cents") or 0)
    return [
        {"hour": f"{hour}:00", "total_cents": cents, "total": money_str(cents)}
        for hour, cents in enumerate(buckets)
    ]


def top_products(sales: Iterable, limit: int = 5) -> list[dict]:
    """Products ranked by units sold; ties keep first-seen order."""
    counts: dict = {}
    for sale in sales:
        for item in _sale_dict(sale).get("items") or []:
            entry = counts.setdefault(item["id"], {"product_id": item["id"], "name": item["name"], "quantity": 0})
            entry["quantity"] += int(item["quantity"])
    ranked = sorted(counts.values(), key=lambda e: e["quantity"], reverse=True)
    return ranked[:limit]


def operator_performance(sales: Iterable, operators: Iterable) -> list[dict]:
    """Sales total per operator, highest first."""
    names = {}
    for op in operators:
        op = op if isinstance(op, dict) else op.to_dict()
        names[op["id"]] = op["name"]

    totals: dict = {}
    for sale in sales:
        sale = _sale_dict(sale)
        totals[sale.get("operator_id")] = totals.get(sale.get("operator_id"), 0) + int(sale.get("total_cents") or 0)

    rows = [
        {
            "operator_id": operator_id,
            "name": names.get(operator_id, UNKNOWN_OPERATOR),
            "total_cents": cents,
            "total": money_str(cents),
        }
        for operator_id, cents in totals.items()
    ]
    rows.sort(key=lambda r: r["total_cents"], reverse=True)
    return rows


def dashboard(supermarket_id: int) -> dict:
    """Latest report plus low-stock products and the three chart aggregates."""
    report = latest_report(supermarket_id)
    sales = list(report.sales or []) if report else []
    operators = (
        db.session.query(User)
        .filter(User.supermarket_id == supermarket_id, User.role == Role.OPERATOR)
        .all()
    )

    return {
        "report": report.to_dict() if report else None,
        "low_stock": [p.to_dict() for p in low_stock_products(supermarket_id)],
        "sales_by_hour": sales_by_hour(sales),
        "top_products": top_products(sales),
        "operator_performance": operator_performance(sales, operators),
    }
