# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import auth_service
from .services.auth_service import AuthenticationError


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid admin session.

    Sets g.current_admin and g.session_context for the route.
    Returns 401 for a missing, unknown, expired or revoked token.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        try:
            context = auth_service.validate_session(token)
        except AuthenticationError as e:
            return jsonify({"error": str(e)}), 401

        g.current_admin = context.admin
        g.session_context = context
        return f(*args, **kwargs)

    return decorated_function
