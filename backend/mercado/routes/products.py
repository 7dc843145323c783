# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/mercado/routes/products.py
"""
Product management routes.

MULTI-TENANT: All product operations are scoped to g.supermarket_id.

SECURITY: All routes require authentication.
- Reads (list, get, barcode lookup) are open to owners and operators
- Writes and bulk updates are owner only
"""
from flask import Blueprint, request, g, current_app

from ..services import products_service
from ..services.bulk_update_service import bulk_update
from ..services.tenant_service import TenantAccessError
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    normalize_money_fields,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_owner, json_body

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "price_cents", "stock", "image_url", "low_stock_threshold", "barcode"},
    required_on_create={"name", "price_cents"},
)

MONEY_FIELDS = {"price": "price_cents"}

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _clean(payload: dict, partial: bool) -> dict:
    payload = normalize_money_fields(payload, MONEY_FIELDS)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    if "barcode" in patch and patch["barcode"] == "":
        patch["barcode"] = None
    enforce_rules_product(patch)
    return patch


@products_bp.get("")
@require_auth
def list_products():
    """
    Query params:
    - q: str (optional) - case-insensitive name search
    - low_stock: "1" (optional) - only products below their threshold
    """
    if request.args.get("low_stock") == "1":
        products = products_service.low_stock_products(g.supermarket_id)
    else:
        products = products_service.list_products(g.supermarket_id, search=request.args.get("q"))
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>")
@require_auth
def get_product(product_id: int):
    try:
        product = products_service.get_product(g.supermarket_id, product_id)
    except TenantAccessError:
        return {"error": "Product not found"}, 404
    return product.to_dict()


@products_bp.get("/barcode/<code>")
@require_auth
def lookup_barcode(code: str):
    """Scanner lookup (barcode, falling back to product id)."""
    product = products_service.find_by_barcode(g.supermarket_id, code)
    if product is None:
        return {"error": "Product not found"}, 404
    return product.to_dict()


@products_bp.post("")
@require_auth
@require_owner
def create_product_route():
    payload = json_body()

    try:
        patch = _clean(payload, partial=False)
        product = products_service.create_product(g.supermarket_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return product.to_dict(), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_owner
def update_product_route(product_id: int):
    payload = json_body()

    try:
        patch = _clean(payload, partial=True)
        product = products_service.update_product(g.supermarket_id, product_id, patch)
    except TenantAccessError:
        return {"error": "Product not found"}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    return product.to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
@require_owner
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(g.supermarket_id, product_id)
    except TenantAccessError:
        return {"error": "Product not found"}, 404
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Internal server error"}, 500

    return {"ok": True}, 200


@products_bp.post("/bulk-update")
@require_auth
@require_owner
def bulk_update_route():
    """
    Body:
        {"product_ids": [1, 2],
         "price": {"operation": "increase_percent", "value": 10},
         "stock": {"operation": "set", "value": 50}}

    Either directive may be omitted; with neither, nothing changes.
    """
    payload = json_body()

    try:
        result = bulk_update(g.supermarket_id, payload)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to bulk update products")
        return {"error": "Internal server error"}, 500

    return result
