# Overview: Flask API routes for supermarket settings; parses input and returns JSON responses.

from flask import Blueprint, g, current_app

from ..services import tenant_service
from ..services.tenant_service import TenantAccessError
from ..validation import ValidationError
from ..decorators import require_auth, require_owner, json_body

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/supermarket")
@require_auth
def get_supermarket_settings():
    try:
        supermarket = tenant_service.get_supermarket(g.supermarket_id)
    except TenantAccessError:
        return {"error": "Supermarket not found"}, 404
    return supermarket.to_dict()


@settings_bp.put("/supermarket")
@require_auth
@require_owner
def update_supermarket_settings():
    """Body: any of name, logo, theme (light|dark|green), cnpj, ie, address, phone."""
    payload = json_body()

    try:
        supermarket = tenant_service.update_settings(g.supermarket_id, payload)
    except TenantAccessError:
        return {"error": "Supermarket not found"}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update supermarket settings")
        return {"error": "Internal server error"}, 500

    return supermarket.to_dict()
