"""CSV detail export of the order history."""
from __future__ import annotations

import csv
import io

from ..models.orders import format_ticket_number
from ..validation import format_amount
from .orders_service import KIND_LABELS


ORDER_CSV_COLUMNS = [
    "Date",
    "Type",
    "Number",
    "Client",
    "DocumentId",
    "Method",
    "Total",
    "PerformedBy",
    "Role",
    "Notes",
]


def _flatten(text: str | None) -> str:
    return " ".join((text or "").splitlines())


def export_orders_csv(orders) -> str:
    """One row per order, every cell quoted, CRLF line endings."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\r\n")
    writer.writerow(ORDER_CSV_COLUMNS)

    for order in orders:
        writer.writerow([
            order.created_at.strftime("%Y-%m-%d %H:%M:%S") if order.created_at else "",
            KIND_LABELS.get(order.kind, order.kind),
            format_ticket_number(order.sequence),
            order.client_name,
            order.client_document_id,
            order.payment_method,
            format_amount(order.total_cents),
            order.performed_by_username,
            order.performed_by_role,
            _flatten(order.notes),
        ])

    return buffer.getvalue()
