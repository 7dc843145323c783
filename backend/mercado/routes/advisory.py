# Overview: Flask API routes for AI advisory; parses input and returns JSON responses.

"""
AI advisory routes (owner only).

Data source for sales-based operations: the report given by "report_id",
otherwise today's live sales. Advisory failures never surface as errors:
text operations return a fallback message, JSON operations an empty result.
"""

from flask import Blueprint, g, current_app

from ..services import advisory_service, products_service, reporting_service
from ..services.tenant_service import TenantAccessError
from ..decorators import require_auth, require_owner, json_body

advisory_bp = Blueprint("advisory", __name__, url_prefix="/api/advisory")


def _resolve_report(data: dict):
    """Requested report, else the latest one. None when the tenant has none."""
    report_id = data.get("report_id")
    if report_id is None:
        return reporting_service.latest_report(g.supermarket_id)
    if isinstance(report_id, bool) or not isinstance(report_id, int):
        raise TenantAccessError("Report not found")
    return reporting_service.get_report(g.supermarket_id, report_id)


def _sales_source(data: dict) -> list:
    if data.get("report_id") is not None:
        return list(_resolve_report(data).sales or [])
    return reporting_service.todays_sales(g.supermarket_id)


def _query(data: dict) -> str | None:
    query = data.get("query")
    if not isinstance(query, str) or not query.strip():
        return None
    return query.strip()


@advisory_bp.post("/sales-analysis")
@require_auth
@require_owner
def sales_analysis():
    data = json_body()
    try:
        report = _resolve_report(data)
    except TenantAccessError:
        return {"error": "Report not found"}, 404
    if report is None:
        return {"error": "No daily report available yet"}, 404

    return {"text": advisory_service.sales_analysis(report)}


@advisory_bp.post("/ask")
@require_auth
@require_owner
def ask():
    data = json_body()
    query = _query(data)
    if query is None:
        return {"error": "query is required"}, 400
    try:
        report = _resolve_report(data)
    except TenantAccessError:
        return {"error": "Report not found"}, 404
    if report is None:
        return {"error": "No daily report available yet"}, 404

    return {"text": advisory_service.ask(query, report)}


@advisory_bp.post("/replenishment")
@require_auth
@require_owner
def replenishment():
    data = json_body()
    try:
        sales = _sales_source(data)
    except TenantAccessError:
        return {"error": "Report not found"}, 404

    products = products_service.list_products(g.supermarket_id)
    return {"items": advisory_service.replenishment_suggestions(products, sales)}


@advisory_bp.post("/forecast")
@require_auth
@require_owner
def forecast():
    data = json_body()
    try:
        sales = _sales_source(data)
    except TenantAccessError:
        return {"error": "Report not found"}, 404

    products = products_service.list_products(g.supermarket_id)
    return {"items": advisory_service.demand_forecast(products, sales)}


@advisory_bp.post("/feedback")
@require_auth
@require_owner
def feedback():
    data = json_body()
    text = data.get("text")
    if not isinstance(text, str) or not text.strip():
        return {"error": "text is required"}, 400

    return {"analysis": advisory_service.analyze_feedback(text)}


@advisory_bp.post("/spikes")
@require_auth
@require_owner
def spikes():
    data = json_body()
    try:
        sales = _sales_source(data)
    except TenantAccessError:
        return {"error": "Report not found"}, 404

    return {"items": advisory_service.sales_spike_alerts(sales)}


@advisory_bp.post("/promotions")
@require_auth
@require_owner
def promotions():
    data = json_body()
    query = _query(data)
    if query is None:
        return {"error": "query is required"}, 400
    try:
        sales = _sales_source(data)
    except TenantAccessError:
        return {"error": "Report not found"}, 404

    products = products_service.list_products(g.supermarket_id)
    current_app.logger.debug("Promotion request over %d products / %d sales", len(products), len(sales))
    return {"text": advisory_service.promotion_suggestions(query, products, sales)}
