# Overview: Flask API routes for operator management; parses input and returns JSON responses.

from flask import Blueprint, request, g, current_app

from ..services import operator_service
from ..services.auth_service import PasswordValidationError
from ..services.operator_service import OperatorError
from ..services.tenant_service import TenantAccessError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_owner, json_body

operators_bp = Blueprint("operators", __name__, url_prefix="/api/operators")


@operators_bp.get("")
@require_auth
@require_owner
def list_operators():
    include_inactive = request.args.get("include_inactive") == "1"
    operators = operator_service.list_operators(g.supermarket_id, include_inactive=include_inactive)
    return {"items": [u.to_dict() for u in operators], "count": len(operators)}


@operators_bp.post("")
@require_auth
@require_owner
def create_operator_route():
    data = json_body()

    try:
        user = operator_service.create_operator(
            g.supermarket_id,
            data.get("name"),
            data.get("email"),
            data.get("password"),
        )
    except (ValidationError, PasswordValidationError) as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create operator")
        return {"error": "Internal server error"}, 500

    return user.to_dict(), 201


@operators_bp.put("/<int:operator_id>")
@require_auth
@require_owner
def update_operator_route(operator_id: int):
    """Body: {"name"?: str, "password"?: str}"""
    data = json_body()

    try:
        user = operator_service.update_operator(g.supermarket_id, operator_id, data)
    except TenantAccessError:
        return {"error": "Operator not found"}, 404
    except OperatorError as e:
        return {"error": str(e)}, 400
    except (ValidationError, PasswordValidationError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update operator")
        return {"error": "Internal server error"}, 500

    return user.to_dict()


@operators_bp.delete("/<int:operator_id>")
@require_auth
@require_owner
def delete_operator_route(operator_id: int):
    try:
        outcome = operator_service.delete_operator(g.supermarket_id, operator_id)
    except TenantAccessError:
        return {"error": "Operator not found"}, 404
    except OperatorError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to delete operator")
        return {"error": "Internal server error"}, 500

    return {"ok": True, "result": outcome}, 200
