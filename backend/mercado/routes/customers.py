# Overview: Flask API routes for customers operations; parses input and returns JSON responses.

"""
Loyalty customer routes.

Owners and operators both manage customers (operators register customers at
checkout). Points are never writable through the API.
"""

from flask import Blueprint, request, g, current_app

from ..services import customers_service
from ..services.tenant_service import TenantAccessError
from ..models import Customer
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_customer,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, json_body

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "national_id"},
    required_on_create={"name", "national_id"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _clean(payload: dict, partial: bool) -> dict:
    if "cpf" in payload and "national_id" not in payload:
        payload = dict(payload, national_id=payload["cpf"])
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=partial)
    enforce_rules_customer(patch)
    return patch


@customers_bp.get("")
@require_auth
def list_customers():
    customers = customers_service.list_customers(g.supermarket_id, search=request.args.get("q"))
    return {"items": [c.to_dict() for c in customers], "count": len(customers)}


@customers_bp.get("/lookup")
@require_auth
def lookup_customer():
    """GET /api/customers/lookup?cpf=123.456.789-00"""
    cpf = request.args.get("cpf", "")
    customer = customers_service.find_by_national_id(g.supermarket_id, cpf)
    if customer is None:
        return {"error": "Customer not found"}, 404
    return customer.to_dict()


@customers_bp.post("")
@require_auth
def create_customer_route():
    payload = json_body()

    try:
        patch = _clean(payload, partial=False)
        customer = customers_service.create_customer(g.supermarket_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return {"error": "Internal server error"}, 500

    return customer.to_dict(), 201


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    payload = json_body()

    try:
        patch = _clean(payload, partial=True)
        customer = customers_service.update_customer(g.supermarket_id, customer_id, patch)
    except TenantAccessError:
        return {"error": "Customer not found"}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return {"error": "Internal server error"}, 500

    return customer.to_dict()
