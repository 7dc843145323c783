# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/mercado/routes/auth.py
"""
Authentication API routes

- register: public, creates a supermarket and its owner
- login: public, returns a bearer token (operators also get an open shift)
- logout / me: require a valid token
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import shift_service
from ..services.auth_service import AuthenticationError, PasswordValidationError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, json_body
from ..models import Role


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Owner self-registration.

    Body:
        {"name", "email", "password", "supermarket_name",
         optional "theme", "cnpj", "ie", "address", "phone", "logo"}
    """
    data = json_body()

    owner_profile = {
        "name": data.get("name"),
        "email": data.get("email"),
        "password": data.get("password"),
    }
    tenant_profile = {
        "name": data.get("supermarket_name"),
        "theme": data.get("theme"),
        "cnpj": data.get("cnpj"),
        "ie": data.get("ie"),
        "address": data.get("address"),
        "phone": data.get("phone"),
        "logo": data.get("logo"),
    }

    try:
        owner = auth_service.register(owner_profile, tenant_profile)
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to register supermarket")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "user": owner.to_dict(),
        "supermarket": owner.supermarket.to_dict(),
        "message": "Registration successful",
    }), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in the Authorization header for protected routes.
    Operator logins open a new shift (any shift left open is superseded).
    """
    data = json_body()
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    try:
        result = auth_service.login(
            email,
            password,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500

    payload = result.to_dict()
    payload["message"] = "Login successful"
    return jsonify(payload), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the caller's session. Shifts and tenant data are untouched."""
    try:
        auth_service.logout(g.token)
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user, supermarket and (operators only) the open shift."""
    user = g.current_user

    if user.role is Role.OPERATOR:
        shift = shift_service.get_open_shift(g.supermarket_id, user.id)
    elif user.role is Role.OWNER:
        shift = None
    else:
        return jsonify({"error": "Unsupported role"}), 403

    return jsonify({
        "user": user.to_dict(),
        "supermarket": user.supermarket.to_dict(),
        "shift": shift.to_dict() if shift else None,
    }), 200
