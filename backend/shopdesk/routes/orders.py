# Overview: Flask API routes for orders operations; parses input and returns JSON responses.

# backend/shopdesk/routes/orders.py
"""
Order routes.

POST /api/orders submits a sale or a sales order in one transaction
(stock re-check, ticket number, stock decrement for sales).
History filters: kind, from, to (ISO date or datetime), method (repeatable
or comma-separated), q (free text).
"""
from flask import Blueprint, request, g, Response

from ..services import orders_service, reporting_service
from ..services.orders_service import (
    OrderDraft,
    OrderValidationError,
    StockInsufficientError,
    OrderConflictError,
)
from ..models.orders import ORDER_KINDS
from ..time_utils import parse_range_bound, utcnow
from ..decorators import require_auth, require_admin

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _history_filters() -> dict:
    """Parse history query params. Raises ValueError on malformed values."""
    kind = request.args.get("kind") or None
    if kind and kind not in ORDER_KINDS:
        raise ValueError(f"kind must be one of: {', '.join(ORDER_KINDS)}")

    methods = []
    for raw in request.args.getlist("method"):
        methods.extend(m.strip() for m in raw.split(",") if m.strip())

    return {
        "kind": kind,
        "date_from": parse_range_bound(request.args.get("from")),
        "date_to": parse_range_bound(request.args.get("to"), end_of_day=True),
        "payment_methods": methods or None,
        "q": request.args.get("q"),
    }


def _order_error(exc) -> dict:
    body = {"error": str(exc)}
    if exc.details:
        body["details"] = exc.details
    return body


@orders_bp.get("")
@require_auth
def list_orders():
    """
    Order history, newest first, items embedded.

    Query params: kind, from, to, method, q, page, per_page
    """
    try:
        filters = _history_filters()
    except ValueError as e:
        return {"error": str(e)}, 400

    return orders_service.list_orders(
        **filters,
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@orders_bp.get("/export")
@require_auth
@require_admin
def export_orders():
    """CSV detail export of the (filtered) history."""
    try:
        filters = _history_filters()
    except ValueError as e:
        return {"error": str(e)}, 400

    body = reporting_service.export_orders_csv(orders_service.find_orders(**filters))
    filename = f"orders-{utcnow().date().isoformat()}.csv"
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@orders_bp.get("/<order_id>")
@require_auth
def get_order(order_id: str):
    order = orders_service.get_order(order_id)
    if order is None:
        return {"error": "Order not found"}, 404
    return order.to_dict()


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Submit an order.

    Body:
    {
        "kind": "sale" | "sales-order",
        "client_id": str,
        "payment_method": "cash" | "qr" | "transfer" | "other",
        "items": [{"product_id": str, "qty": int}, ...],
        "discount_cents": int (optional),
        "delivery_address": str (optional),
        "notes": str (optional)
    }

    Returns 201 with the order (ticket number, items, totals), 400 on invalid
    input, 409 when stock is short (details.items lists every short line).
    """
    try:
        draft = OrderDraft.from_payload(request.get_json(silent=True))
        order = orders_service.create_order(draft, performed_by=g.current_user)
    except OrderValidationError as e:
        return _order_error(e), 400
    except (StockInsufficientError, OrderConflictError) as e:
        return _order_error(e), 409

    return order.to_dict(), 201


@orders_bp.delete("/<order_id>")
@require_auth
@require_admin
def delete_order_route(order_id: str):
    """Delete one order and its items. Stock is not restored."""
    if not orders_service.delete_order(order_id):
        return {"error": "Order not found"}, 404
    return {"ok": True}, 200


@orders_bp.delete("")
@require_auth
@require_admin
def clear_orders_route():
    """Delete the whole order history."""
    deleted = orders_service.clear_orders()
    return {"ok": True, "deleted": deleted}, 200
