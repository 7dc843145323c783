# Overview: Flask API routes for the checkout register; parses input and returns JSON responses.

"""
Point-of-sale routes (operators only).

The operator's open shift is resolved from the session; a shift is opened
at operator login and closed through POST /api/pos/close, which also logs
the operator out.
"""

from flask import Blueprint, request, g, current_app

from ..models import Sale
from ..services import shift_service, tenant_service
from ..services.receipt_service import render_receipt, receipt_qr_text
from ..services.shift_service import ShiftError, ShiftClosedError
from ..services.tenant_service import TenantAccessError
from ..validation import ValidationError
from ..decorators import require_auth, require_operator, json_body

pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


@pos_bp.get("/shift")
@require_auth
@require_operator
def current_shift():
    """Open shift with live totals, sales and cash flow."""
    shift = shift_service.get_open_shift(g.supermarket_id, g.current_user.id)
    if shift is None:
        return {"error": "No open shift"}, 404
    return shift_service.shift_summary(shift)


@pos_bp.post("/sales")
@require_auth
@require_operator
def create_sale():
    """
    Body:
        {"items": [{"product_id": 1, "quantity": 2}, ...],
         "customer_id": 7 | null}

    Prices come from the catalog at commit time; any client total is ignored.
    """
    data = json_body()

    try:
        shift = shift_service.require_open_shift(g.supermarket_id, g.current_user.id)
        cart = shift_service.load_cart(g.supermarket_id, data.get("items"))
        if cart.is_empty:
            raise ValidationError("Cart is empty")

        customer_id = data.get("customer_id")
        if customer_id is not None and (isinstance(customer_id, bool) or not isinstance(customer_id, int)):
            raise ValidationError("customer_id must be an integer")

        sale = shift_service.record_sale(shift, cart.items, g.current_user.id, customer_id=customer_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except TenantAccessError as e:
        return {"error": str(e)}, 404
    except ShiftClosedError as e:
        return {"error": str(e)}, 409
    except ShiftError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return {"error": "Internal server error"}, 500

    supermarket = tenant_service.get_supermarket(g.supermarket_id)
    return {
        "sale": sale.to_dict(),
        "receipt_qr_text": receipt_qr_text(sale, supermarket),
    }, 201


@pos_bp.get("/sales/<int:sale_id>/receipt")
@require_auth
def sale_receipt(sale_id: int):
    """Fixed-width receipt text. ?width= overrides the 40-column default."""
    width = request.args.get("width", default=40, type=int)
    if width < 32 or width > 80:
        return {"error": "width must be between 32 and 80"}, 400

    try:
        sale = tenant_service.require_in_tenant(Sale, sale_id, g.supermarket_id, label="Sale")
    except TenantAccessError:
        return {"error": "Sale not found"}, 404

    supermarket = tenant_service.get_supermarket(g.supermarket_id)
    operator_name = sale.operator.name if sale.operator else None
    return {
        "sale_id": sale.id,
        "text": render_receipt(sale, supermarket, operator_name, width=width),
        "qr_text": receipt_qr_text(sale, supermarket),
    }


@pos_bp.post("/withdrawals")
@require_auth
@require_operator
def create_withdrawal():
    """
    Sangria. Body: {"amount": 30.00}

    Non-numeric or non-positive amounts are ignored (200 with entry null).
    """
    data = json_body()

    try:
        shift = shift_service.require_open_shift(g.supermarket_id, g.current_user.id)
        entry = shift_service.record_cash_withdrawal(shift, data.get("amount"), g.current_user.id)
    except ShiftClosedError as e:
        return {"error": str(e)}, 409
    except ShiftError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to record withdrawal")
        return {"error": "Internal server error"}, 500

    if entry is None:
        return {"entry": None, "message": "Nothing recorded"}, 200
    return {"entry": entry.to_dict()}, 201


@pos_bp.post("/close")
@require_auth
@require_operator
def close_shift_route():
    """Close the open shift into a daily report and log the operator out."""
    try:
        shift = shift_service.require_open_shift(g.supermarket_id, g.current_user.id)
        report = shift_service.close_shift(shift)
    except ShiftClosedError as e:
        return {"error": str(e)}, 409
    except ShiftError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return {"error": "Internal server error"}, 500

    return {"report": report.to_dict(), "logged_out": True}, 200
