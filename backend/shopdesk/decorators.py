# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .models.orders import ROLE_ADMIN
from .services import session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session token.

    Sets the following Flask g attributes:
    - g.current_user: the AuthenticatedUser (username + role)
    - g.session_context: the full SessionContext object

    Returns 401 if the Authorization header is missing, the token is unknown,
    expired or revoked, or the user was removed/deactivated.
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
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Restrict a route to the given roles. Must be stacked under @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return jsonify({"error": "Authentication required"}), 401

            if g.current_user.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_role": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator


require_admin = require_role(ROLE_ADMIN)
