"""
Orders Service - order submission with stock adjustment and ticket numbering

Submitting an order is one database transaction:
  1. lock and re-read every product in the cart
  2. reject the whole order if any line is short (every offending line is listed)
  3. draw the ticket number for the order kind
  4. insert header + items
  5. for sales, decrement stock with a conditional UPDATE (stock >= qty)
Any failure rolls everything back; nothing is ever half-written.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import update, or_, func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Order, OrderItem, Product, Client
from ..models.orders import ORDER_KINDS, ORDER_KIND_SALE
from ..validation import parse_strict_int, ValidationError
from .auth_service import AuthenticatedUser
from .concurrency import lock_for_update, run_with_retry
from .products_service import paginate
from .storage import guarded
from . import sequence_service


PAYMENT_METHODS = ("cash", "qr", "transfer", "other")

DEFAULT_DELIVERY_ADDRESS = "Store pickup"

KIND_LABELS = {
    "sale": "sale",
    "sales-order": "order",
}


class OrderError(ValueError):
    """Base class for order submission errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class OrderValidationError(OrderError):
    """Precondition failure detected before anything is written."""


class StockInsufficientError(OrderError):
    """One or more cart lines exceed the stock on hand (details["items"])."""


class OrderConflictError(OrderError):
    """The order collides with committed data, usually an already used ticket number."""


@dataclass
class CartLine:
    product_id: str
    qty: int


@dataclass
class OrderDraft:
    kind: str
    client_id: str
    payment_method: str
    lines: list[CartLine]
    discount_cents: int = 0
    delivery_address: str = ""
    notes: str = ""

    @classmethod
    def from_payload(cls, payload: dict) -> "OrderDraft":
        """Parse the JSON body of POST /api/orders. Raises OrderValidationError."""
        if not isinstance(payload, dict):
            raise OrderValidationError("Invalid JSON payload")

        items = payload.get("items")
        if not isinstance(items, list):
            raise OrderValidationError("items must be a list")

        lines = []
        for index, item in enumerate(items, start=1):
            if not isinstance(item, dict) or not item.get("product_id"):
                raise OrderValidationError(f"Item {index}: product_id is required")
            try:
                qty = parse_strict_int(item.get("qty"), f"Item {index}: qty")
            except ValidationError as e:
                raise OrderValidationError(str(e))
            lines.append(CartLine(product_id=str(item["product_id"]), qty=qty))

        try:
            discount = parse_strict_int(payload.get("discount_cents", 0) or 0, "discount_cents")
        except ValidationError as e:
            raise OrderValidationError(str(e))

        return cls(
            kind=str(payload.get("kind") or ""),
            client_id=str(payload.get("client_id") or ""),
            payment_method=str(payload.get("payment_method") or ""),
            lines=lines,
            discount_cents=discount,
            delivery_address=str(payload.get("delivery_address") or ""),
            notes=str(payload.get("notes") or ""),
        )


def _check_preconditions(draft: OrderDraft) -> None:
    if draft.kind not in ORDER_KINDS:
        raise OrderValidationError(f"kind must be one of: {', '.join(ORDER_KINDS)}")
    if draft.payment_method not in PAYMENT_METHODS:
        raise OrderValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    if not draft.client_id:
        raise OrderValidationError("Select or create a client before continuing")
    if not draft.lines:
        raise OrderValidationError("Add at least one product to the cart")
    for index, line in enumerate(draft.lines, start=1):
        if line.qty <= 0:
            raise OrderValidationError(f"Item {index}: qty must be > 0")
    if draft.discount_cents < 0:
        raise OrderValidationError("discount_cents must be >= 0")


def _required_by_product(lines: list[CartLine]) -> dict[str, int]:
    totals: dict[str, int] = {}
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.qty
    return totals


def _validate_stock(products: dict[str, Product], required: dict[str, int]) -> None:
    problems = []
    for product_id, qty in required.items():
        product = products.get(product_id)
        if product is None:
            problems.append({
                "product_id": product_id,
                "product_name": None,
                "color": None,
                "required": qty,
                "available": 0,
                "reason": "not_found",
            })
        elif product.stock < qty:
            problems.append({
                "product_id": product_id,
                "product_name": product.name,
                "color": product.color,
                "required": qty,
                "available": product.stock,
                "reason": "insufficient_stock",
            })

    if problems:
        raise StockInsufficientError(
            "Insufficient stock to register the order",
            details={"items": problems},
        )


def _decrement_stock(product_id: str, qty: int) -> None:
    """stock -= qty, only if enough is left; the row lock makes this the single writer."""
    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= qty)
        .values(stock=Product.stock - qty)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise StockInsufficientError(
            "Insufficient stock to register the order",
            details={"items": [{"product_id": product_id, "required": qty, "reason": "insufficient_stock"}]},
        )


def _is_ticket_collision(exc: IntegrityError) -> bool:
    # PostgreSQL names the constraint; SQLite lists the columns
    message = str(exc.orig)
    return "uq_orders_kind_sequence" in message or "orders.kind, orders.sequence" in message


@guarded
def create_order(draft: OrderDraft, performed_by: AuthenticatedUser) -> Order:
    """
    Submit an order (see module docstring for the steps).

    Raises:
        OrderValidationError: bad draft, unknown client, discount > subtotal
        StockInsufficientError: any line short on stock (nothing persisted)
        StorageError: database failure (nothing persisted)
    """
    _check_preconditions(draft)

    def _op() -> Order:
        try:
            client = db.session.get(Client, draft.client_id)
            if client is None:
                raise OrderValidationError("Client not found")

            required = _required_by_product(draft.lines)
            rows = lock_for_update(
                db.session.query(Product).filter(Product.id.in_(list(required)))
            ).all()
            products = {p.id: p for p in rows}

            _validate_stock(products, required)

            items = []
            for position, line in enumerate(draft.lines):
                product = products[line.product_id]
                items.append(OrderItem(
                    position=position,
                    product_id=product.id,
                    product_name=product.name,
                    color=product.color,
                    qty=line.qty,
                    unit_price_cents=product.sale_price_cents,
                    subtotal_cents=product.sale_price_cents * line.qty,
                ))

            subtotal = sum(item.subtotal_cents for item in items)
            if draft.discount_cents > subtotal:
                raise OrderValidationError("The discount cannot exceed the subtotal")

            order = Order(
                kind=draft.kind,
                sequence=sequence_service.next_ticket_number(draft.kind),
                payment_method=draft.payment_method,
                performed_by_username=performed_by.username,
                performed_by_role=performed_by.role,
                client_id=client.id,
                client_name=client.name,
                client_document_id=client.document_id,
                client_phone=client.phone,
                delivery_address=draft.delivery_address.strip() or DEFAULT_DELIVERY_ADDRESS,
                subtotal_cents=subtotal,
                discount_cents=draft.discount_cents,
                total_cents=subtotal - draft.discount_cents,
                notes=draft.notes.strip(),
                items=items,
            )
            db.session.add(order)
            db.session.flush()

            if draft.kind == ORDER_KIND_SALE:
                for product_id, qty in required.items():
                    _decrement_stock(product_id, qty)

            db.session.commit()
        except OrderError:
            db.session.rollback()
            raise
        except IntegrityError as exc:
            db.session.rollback()
            if _is_ticket_collision(exc):
                raise OrderConflictError(
                    "Ticket number already in use; raise the next number in ticket settings"
                ) from exc
            raise OrderConflictError(
                "The order conflicts with a concurrent change; please submit it again"
            ) from exc

        return order

    return run_with_retry(_op, label=f"{draft.kind} submission")


def _like_term(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _search_filter(q: str):
    needle = q.strip().lower()
    term = _like_term(needle)
    kind_matches = [kind for kind, label in KIND_LABELS.items() if needle in label]
    clauses = [
        func.lower(Order.client_name).like(term, escape="\\"),
        func.lower(Order.client_document_id).like(term, escape="\\"),
        func.lower(Order.payment_method).like(term, escape="\\"),
        func.lower(func.coalesce(Order.notes, "")).like(term, escape="\\"),
        Order.items.any(func.lower(OrderItem.product_name).like(term, escape="\\")),
    ]
    # ASCII digits only: "²".isdigit() is true but int() rejects it
    if needle.isascii() and needle.isdecimal():
        clauses.append(Order.sequence == int(needle))
    if kind_matches:
        clauses.append(Order.kind.in_(kind_matches))
    return or_(*clauses)


def _filtered_query(
    *,
    kind: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    payment_methods: list[str] | None = None,
    q: str | None = None,
):
    query = db.session.query(Order)
    if kind:
        query = query.filter(Order.kind == kind)
    if date_from is not None:
        query = query.filter(Order.created_at >= date_from)
    if date_to is not None:
        query = query.filter(Order.created_at <= date_to)
    if payment_methods:
        query = query.filter(Order.payment_method.in_(payment_methods))
    if q and q.strip():
        query = query.filter(_search_filter(q))
    return query.order_by(Order.created_at.desc(), Order.sequence.desc())


@guarded
def list_orders(
    *,
    kind: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    payment_methods: list[str] | None = None,
    q: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Order history, newest first, items embedded.

    q matches client name/document, payment method, notes, kind label
    ("sale"/"order"), ticket number and item product names.
    """
    query = _filtered_query(
        kind=kind,
        date_from=date_from,
        date_to=date_to,
        payment_methods=payment_methods,
        q=q,
    )
    return paginate(query, page, per_page, lambda o: o.to_dict())


@guarded
def find_orders(**filters) -> list[Order]:
    """Same filters as list_orders, unpaginated model objects (exports)."""
    return _filtered_query(**filters).all()


@guarded
def get_order(order_id: str) -> Order | None:
    return db.session.get(Order, order_id)


@guarded
def delete_order(order_id: str) -> bool:
    """Delete one order and its items. Returns False when it does not exist."""
    order = db.session.get(Order, order_id)
    if order is None:
        return False
    db.session.delete(order)
    db.session.commit()
    return True


@guarded
def clear_orders() -> int:
    """Delete every order (items cascade). Returns the number of orders removed."""
    db.session.query(OrderItem).delete()
    deleted = db.session.query(Order).delete()
    db.session.commit()
    return deleted
