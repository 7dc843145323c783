# Overview: Flask API routes for daily reports and the owner dashboard.

from flask import Blueprint, request, g

from ..services import reporting_service
from ..services.tenant_service import TenantAccessError
from ..decorators import require_auth, require_owner

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("")
@require_auth
@require_owner
def list_reports():
    """Newest first, without the sale/cash-flow snapshots. ?limit= caps the list."""
    limit = request.args.get("limit", type=int)
    reports = reporting_service.list_reports(g.supermarket_id, limit=limit)
    return {"items": [r.to_dict(include_details=False) for r in reports], "count": len(reports)}


@reports_bp.get("/dashboard")
@require_auth
@require_owner
def dashboard():
    return reporting_service.dashboard(g.supermarket_id)


@reports_bp.get("/<int:report_id>")
@require_auth
@require_owner
def get_report(report_id: int):
    try:
        report = reporting_service.get_report(g.supermarket_id, report_id)
    except TenantAccessError:
        return {"error": "Report not found"}, 404
    return report.to_dict()
