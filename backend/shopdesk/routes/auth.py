# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/shopdesk/routes/auth.py
"""
Authentication API routes

- First-run setup creates the admin account (only while none exists)
- Login checks credentials for the claimed role and issues a session token
- Every login failure answers with the same generic message
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import (
    InvalidCredentialsError,
    PasswordValidationError,
    SetupError,
)
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_response(user, status: int):
    session, token = session_service.create_session(
        user=user,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
        "message": "Login successful",
    }), status


@auth_bp.get("/setup-status")
def setup_status_route():
    """Whether the admin account still has to be created."""
    return jsonify({"setup_required": auth_service.is_initial_setup_required()})


@auth_bp.post("/setup")
def setup_route():
    """
    Create the admin account on a fresh install and log it in.

    Returns 409 once setup has been completed.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    try:
        user = auth_service.complete_initial_setup(data.get("username"), data.get("password"))
    except SetupError as e:
        return jsonify({"error": str(e)}), 409
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400

    current_app.logger.info("Initial setup completed for admin %s", user.username)
    return _session_response(user, 201)


@auth_bp.post("/login")
def login_route():
    """
    Authenticate for a role and create a session token.

    Body: {"role": "admin"|"operator", "username": str, "password": str}
    The token must be sent as "Authorization: Bearer <token>" afterwards.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    role = data.get("role")
    username = data.get("username")
    password = data.get("password")

    if not all([role, username, password]):
        return jsonify({"error": "role, username and password required"}), 400

    try:
        user = auth_service.authenticate(role, username, password)
    except InvalidCredentialsError as e:
        current_app.logger.info("Failed login for role %s from %s", role, request.remote_addr)
        return jsonify({"error": str(e)}), 401

    return _session_response(user, 200)


@auth_bp.post("/logout")
def logout_route():
    """Revoke the session token (logout)."""
    token = bearer_token()
    if not token:
        return jsonify({"error": "Authorization header required"}), 401

    if not session_service.revoke_session(token, reason="User logout"):
        return jsonify({"error": "Invalid or expired token"}), 401

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """Identity behind the current token."""
    context = g.session_context
    return jsonify({
        "user": g.current_user.to_dict(),
        "session": context.session.to_dict(),
    })
