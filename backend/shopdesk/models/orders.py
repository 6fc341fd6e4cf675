from __future__ import annotations

from ..extensions import db
from shopdesk.time_utils import to_utc_z, utcnow
from .inventory import new_id


ORDER_KIND_SALE = "sale"
ORDER_KIND_SALES_ORDER = "sales-order"
ORDER_KINDS = (ORDER_KIND_SALE, ORDER_KIND_SALES_ORDER)

ROLE_ADMIN = "admin"
ROLE_OPERATOR = "operator"
ROLES = (ROLE_ADMIN, ROLE_OPERATOR)


def format_ticket_number(sequence: int | None) -> str | None:
    if sequence is None:
        return None
    return str(sequence).zfill(6)


class Order(db.Model):
    """
    Order document: either an immediate point-of-sale transaction (kind=sale)
    or a deferred sales order (kind=sales-order).

    Client fields are snapshots copied at creation time so later edits to the
    client do not rewrite history. Orders are never updated, only deleted.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("kind", "sequence", name="uq_orders_kind_sequence"),
        db.CheckConstraint("kind in ('sale', 'sales-order')", name="ck_orders_kind"),
        db.Index("ix_orders_created_at", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    kind = db.Column(db.String(16), nullable=False, index=True)

    # Per-kind ticket number (see sequence_service)
    sequence = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(32), nullable=False)

    # Who registered it (snapshot, users live in the settings document)
    performed_by_username = db.Column(db.String(128), nullable=False)
    performed_by_role = db.Column(db.String(16), nullable=False)

    # Client snapshot
    client_id = db.Column(db.String(36), db.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)
    client_name = db.Column(db.String(255), nullable=False)
    client_document_id = db.Column(db.String(64), nullable=False)
    client_phone = db.Column(db.String(32), nullable=True)
    delivery_address = db.Column(db.String(255), nullable=False)

    # Amounts in cents: total = subtotal - discount
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.position",
    )

    @property
    def ticket_number(self) -> str | None:
        return format_ticket_number(self.sequence)

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "kind": self.kind,
            "sequence": self.sequence,
            "ticket_number": self.ticket_number,
            "payment_method": self.payment_method,
            "performed_by_username": self.performed_by_username,
            "performed_by_role": self.performed_by_role,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "client_document_id": self.client_document_id,
            "client_phone": self.client_phone or "",
            "delivery_address": self.delivery_address,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "notes": self.notes or "",
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """Order line. Product name/color are snapshots; product_id may go NULL."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("qty > 0", name="ck_order_items_qty_positive"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)

    # Cart order, so receipts list lines the way they were entered
    position = db.Column(db.Integer, nullable=False, default=0)

    product_name = db.Column(db.String(255), nullable=False)
    color = db.Column(db.String(64), nullable=True)

    qty = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "color": self.color or "",
            "qty": self.qty,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
        }


class TicketSequence(db.Model):
    """
    Next ticket number per order kind.

    Incremented with a single UPDATE inside the order transaction, so two
    submissions can never draw the same number.
    """
    __tablename__ = "ticket_sequences"

    kind = db.Column(db.String(16), primary_key=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "next_number": self.next_number}
