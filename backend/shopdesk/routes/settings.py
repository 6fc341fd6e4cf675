# Overview: Flask API routes for settings operations; parses input and returns JSON responses.

# backend/shopdesk/routes/settings.py
"""
Settings routes: ticket texts and numbering, users, low-stock threshold.

Reading the ticket settings is open to every role (receipts need them);
everything else is admin only.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import settings_service
from ..services.auth_service import PasswordValidationError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_admin


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/tickets")
@require_auth
def get_tickets():
    return jsonify(settings_service.get_tickets_config())


@settings_bp.put("/tickets")
@require_auth
@require_admin
def put_tickets():
    """
    Update ticket texts; "sale.next_number" / "order.next_number" reset the counters.
    """
    try:
        cfg = settings_service.save_tickets_config(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(cfg), 200


@settings_bp.get("/users")
@require_auth
@require_admin
def get_users():
    cfg = settings_service.get_users_config()
    return jsonify(settings_service.public_users_config(cfg))


@settings_bp.put("/users")
@require_auth
@require_admin
def put_users():
    """
    Replace the users document.

    Body: {"admin": {"username", "password"?}, "operators": [{"id"?, "username", "password"?, "active"}]}
    Omitted passwords keep the stored ones.
    """
    try:
        current = settings_service.get_users_config()
        cfg = settings_service.build_users_config(request.get_json(silent=True), current)
        settings_service.save_users_config(cfg)
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400

    current_app.logger.info("Users settings updated by %s", g.current_user.username)
    return jsonify(settings_service.public_users_config(cfg)), 200


@settings_bp.get("/low-stock-threshold")
@require_auth
@require_admin
def get_low_stock_threshold():
    return jsonify({"threshold": settings_service.get_low_stock_threshold()})


@settings_bp.put("/low-stock-threshold")
@require_auth
@require_admin
def put_low_stock_threshold():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    try:
        threshold = settings_service.set_low_stock_threshold(data.get("threshold"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"threshold": threshold}), 200
