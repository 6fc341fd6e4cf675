from __future__ import annotations

import uuid

from ..extensions import db
from shopdesk.time_utils import to_utc_z, utcnow


def new_id() -> str:
    return str(uuid.uuid4())


class Product(db.Model):
    """
    Sellable product variant.

    A product is identified by name + color (the color is the variant
    discriminator). Stock is a plain counter decremented by sales.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_created_at", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    color = db.Column(db.String(64), nullable=False)

    stock = db.Column(db.Integer, nullable=False, default=0)

    # Amounts in cents
    cost_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)

    # {"name", "size", "type", "data_url"} or NULL
    image = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "stock": self.stock,
            "cost_cents": self.cost_cents,
            "sale_price_cents": self.sale_price_cents,
            "image": self.image,
            "created_at": to_utc_z(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Product {self.name} ({self.color}) stock={self.stock}>"
