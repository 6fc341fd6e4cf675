# backend/shopdesk/services/products_service.py
"""
Products repository.

Upsert semantics: no id creates a product with a fresh id, a known id
updates it in place (last writer wins), an unknown explicit id creates
the product under that id.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    enforce_price_not_below_cost,
)
from .storage import guarded
from . import settings_service

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "color", "stock", "cost_cents", "sale_price_cents", "image"},
    required_on_create={"name", "color", "stock", "cost_cents", "sale_price_cents"},
)


def _newest_first(query):
    return query.order_by(Product.created_at.desc(), Product.id.asc())


def paginate(query, page: int | None, per_page: int | None, serialize) -> dict:
    """Shared list envelope: all items when page is None, else one page."""
    if page is None:
        rows = query.all()
        return {
            "items": [serialize(r) for r in rows],
            "count": len(rows),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [serialize(r) for r in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


@guarded
def list_products(page: int | None = None, per_page: int | None = None) -> dict:
    """Newest first. Paginated when page is given (per_page default 20, max 100)."""
    return paginate(_newest_first(db.session.query(Product)), page, per_page, lambda p: p.to_dict())


@guarded
def find_products() -> list[Product]:
    """All products, newest first (exports)."""
    return _newest_first(db.session.query(Product)).all()


@guarded
def get_product(product_id: str) -> Product | None:
    return db.session.get(Product, product_id)


@guarded
def upsert_product(*, payload: dict, product_id: str | None = None) -> Product:
    """
    Validate and create-or-update a product.

    Raises ValidationError on bad input, including a sale price under cost.
    """
    existing = db.session.get(Product, product_id) if product_id else None

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=existing is not None)
    enforce_rules_product(patch)

    cost = patch.get("cost_cents", existing.cost_cents if existing else 0)
    price = patch.get("sale_price_cents", existing.sale_price_cents if existing else 0)
    enforce_price_not_below_cost(cost, price)

    if existing is None:
        product = Product(**patch)
        if product_id:
            product.id = product_id
        db.session.add(product)
    else:
        product = existing
        for k, v in patch.items():
            setattr(product, k, v)

    db.session.commit()
    return product


@guarded
def delete_product(product_id: str) -> bool:
    """
    Delete a product. Returns False when it does not exist.

    Order items keep their name/color snapshot; their product_id goes NULL.
    """
    product = db.session.get(Product, product_id)
    if product is None:
        return False
    db.session.delete(product)
    db.session.commit()
    return True


@guarded
def list_low_stock_products(threshold: int | None = None) -> dict:
    """Products at or below the threshold (settings value when omitted), lowest stock first."""
    if threshold is None:
        threshold = settings_service.get_low_stock_threshold()

    products = (
        db.session.query(Product)
        .filter(Product.stock <= threshold)
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )
    return {
        "threshold": threshold,
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }
