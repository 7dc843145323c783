# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, abort, make_response

from .models import Role
from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'supermarket_id')


def json_body() -> dict:
    """Request JSON object. A missing or unparseable body is {}; any other JSON type answers 400."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        abort(make_response(jsonify({"error": "Invalid JSON payload"}), 400))
    return data


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require authentication and establish tenant context.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.supermarket_id: The tenant of the session
    - g.session_context: The full SessionContext object
    - g.token: The plaintext bearer token (used by logout)

    Returns 401 if the header is missing or the token is invalid, expired,
    revoked or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.supermarket_id = context.supermarket_id
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: Role):
    """
    Restrict a route to the given roles. Must be stacked under @require_auth.

    Returns 403 with the required roles when the caller's role is not listed.
    """
    allowed = set(roles)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            role = g.current_user.role
            if role not in allowed:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": sorted(r.value for r in allowed),
                }), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator


require_owner = require_role(Role.OWNER)
require_operator = require_role(Role.OPERATOR)
