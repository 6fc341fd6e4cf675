# backend/shopdesk/services/clients_service.py
"""Clients repository (same upsert/delete contract as products)."""
from __future__ import annotations

from ..extensions import db
from ..models import Client
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_client,
)
from .storage import guarded
from .products_service import paginate

CLIENT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "document_id", "phone", "address"},
    required_on_create={"name", "document_id", "phone", "address"},
)


def _newest_first(query):
    return query.order_by(Client.created_at.desc(), Client.id.asc())


@guarded
def list_clients(page: int | None = None, per_page: int | None = None) -> dict:
    query = _newest_first(db.session.query(Client))
    return paginate(query, page, per_page, lambda c: c.to_dict())


@guarded
def find_clients() -> list[Client]:
    """All clients, newest first (exports)."""
    return _newest_first(db.session.query(Client)).all()


@guarded
def get_client(client_id: str) -> Client | None:
    return db.session.get(Client, client_id)


@guarded
def upsert_client(*, payload: dict, client_id: str | None = None) -> Client:
    """Validate and create-or-update a client. Raises ValidationError on bad input."""
    existing = db.session.get(Client, client_id) if client_id else None

    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=existing is not None)
    enforce_rules_client(patch)

    if existing is None:
        client = Client(**patch)
        if client_id:
            client.id = client_id
        db.session.add(client)
    else:
        client = existing
        for k, v in patch.items():
            setattr(client, k, v)

    db.session.commit()
    return client


@guarded
def delete_client(client_id: str) -> bool:
    """
    Delete a client. Returns False when it does not exist.

    Orders keep their client snapshot; their client_id goes NULL.
    """
    client = db.session.get(Client, client_id)
    if client is None:
        return False
    db.session.delete(client)
    db.session.commit()
    return True
