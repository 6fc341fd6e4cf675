# Overview: Flask API routes for clients operations; parses input and returns JSON responses.

# backend/shopdesk/routes/clients.py
"""
Client routes.

Any role can list, read and register clients (operators register new
clients at the point of sale). Editing, deleting, import and export are
admin only; an operator POST carrying an existing id is refused.
"""
from flask import Blueprint, g, request

from ..models.orders import ROLE_ADMIN
from ..services import clients_service, spreadsheet_service
from ..services.spreadsheet_service import SpreadsheetError
from ..validation import ValidationError
from ..decorators import require_auth, require_admin
from .files import read_upload, xlsx_response

clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.get("")
@require_auth
def list_clients():
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int)
    return clients_service.list_clients(page=page, per_page=per_page)


@clients_bp.get("/<client_id>")
@require_auth
def get_client(client_id: str):
    client = clients_service.get_client(client_id)
    if client is None:
        return {"error": "Client not found"}, 404
    return client.to_dict()


@clients_bp.post("")
@require_auth
def create_client_route():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400

    client_id = payload.pop("id", None)
    if (
        client_id
        and g.current_user.role != ROLE_ADMIN
        and clients_service.get_client(client_id) is not None
    ):
        return {"error": "Permission denied", "required_role": [ROLE_ADMIN]}, 403

    try:
        client = clients_service.upsert_client(payload=payload, client_id=client_id)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return client.to_dict(), 201


@clients_bp.put("/<client_id>")
@require_auth
@require_admin
def update_client_route(client_id: str):
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400

    payload.pop("id", None)
    try:
        client = clients_service.upsert_client(payload=payload, client_id=client_id)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return client.to_dict(), 200


@clients_bp.delete("/<client_id>")
@require_auth
@require_admin
def delete_client_route(client_id: str):
    """Delete a client. Past orders keep the client snapshot."""
    if not clients_service.delete_client(client_id):
        return {"error": "Client not found"}, 404
    return {"ok": True}, 200


@clients_bp.post("/import")
@require_auth
@require_admin
def import_clients_route():
    """Import clients from an .xlsx upload (multipart field "file")."""
    try:
        result = spreadsheet_service.import_clients(read_upload())
    except SpreadsheetError as e:
        return {"error": str(e)}, 400

    return result.to_dict(), 200


@clients_bp.get("/export")
@require_auth
@require_admin
def export_clients_route():
    clients = clients_service.find_clients()
    return xlsx_response(
        spreadsheet_service.export_clients(clients),
        spreadsheet_service.export_filename("clients"),
    )


@clients_bp.get("/template")
@require_auth
@require_admin
def clients_template_route():
    return xlsx_response(spreadsheet_service.clients_template(), "clients-template.xlsx")
