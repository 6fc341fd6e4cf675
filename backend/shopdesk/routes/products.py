# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/shopdesk/routes/products.py
"""
Product routes.

SECURITY: All routes require authentication.
- Read operations are open to every role
- Write, import and export operations are admin only
"""
from flask import Blueprint, request

from ..services import products_service, spreadsheet_service
from ..services.spreadsheet_service import SpreadsheetError
from ..validation import ValidationError
from ..decorators import require_auth, require_admin
from .files import read_upload, xlsx_response

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products, newest first.

    Query params:
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int)
    return products_service.list_products(page=page, per_page=per_page)


@products_bp.get("/low-stock")
@require_auth
def low_stock_products():
    """Products at or below the threshold (query param or configured value)."""
    threshold = request.args.get("threshold", type=int)
    if threshold is not None and threshold < 0:
        return {"error": "threshold must be >= 0"}, 400
    return products_service.list_low_stock_products(threshold)


@products_bp.get("/<product_id>")
@require_auth
def get_product(product_id: str):
    product = products_service.get_product(product_id)
    if product is None:
        return {"error": "Product not found"}, 404
    return product.to_dict()


@products_bp.post("")
@require_auth
@require_admin
def create_product_route():
    """Create a product; an "id" in the body is honored (upsert)."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400

    product_id = payload.pop("id", None)
    try:
        product = products_service.upsert_product(payload=payload, product_id=product_id)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return product.to_dict(), 201


@products_bp.put("/<product_id>")
@require_auth
@require_admin
def update_product_route(product_id: str):
    """Update a product in place (created under this id when unknown)."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400

    payload.pop("id", None)
    try:
        product = products_service.upsert_product(payload=payload, product_id=product_id)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return product.to_dict(), 200


@products_bp.delete("/<product_id>")
@require_auth
@require_admin
def delete_product_route(product_id: str):
    """Delete a product. Historical order items keep their snapshot."""
    if not products_service.delete_product(product_id):
        return {"error": "Product not found"}, 404
    return {"ok": True}, 200


@products_bp.post("/import")
@require_auth
@require_admin
def import_products_route():
    """
    Import products from an .xlsx upload (multipart field "file").

    Valid rows are created; invalid rows come back in "issues".
    """
    try:
        result = spreadsheet_service.import_products(read_upload())
    except SpreadsheetError as e:
        return {"error": str(e)}, 400

    return result.to_dict(), 200


@products_bp.get("/export")
@require_auth
@require_admin
def export_products_route():
    products = products_service.find_products()
    return xlsx_response(
        spreadsheet_service.export_products(products),
        spreadsheet_service.export_filename("inventory"),
    )


@products_bp.get("/template")
@require_auth
@require_admin
def products_template_route():
    return xlsx_response(spreadsheet_service.products_template(), "inventory-template.xlsx")
