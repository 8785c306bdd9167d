# Overview: Admin login/logout routes.

from flask import Blueprint, request, jsonify, g

from ..services import auth_service
from ..services.auth_service import AuthenticationError
from ..validation import ValidationError
from ..decorators import require_auth, bearer_token


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.post("/login")
def login_route():
    """
    Authenticate an admin and open a session.

    Body: {"email": ..., "password": ...}
    Returns the bearer token to send as `Authorization: Bearer <token>`.
    """
    data = request.get_json(silent=True) or {}

    try:
        admin, token = auth_service.login(
            data.get("email"),
            data.get("password"),
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 401

    return jsonify({"token": token, "admin": admin.to_dict()}), 200


@admin_bp.post("/logout")
@require_auth
def logout_route():
    auth_service.logout(bearer_token())
    return jsonify({"ok": True, "email": g.current_admin.email}), 200
