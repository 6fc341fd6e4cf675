from __future__ import annotations

from ..extensions import db
from shopdesk.time_utils import to_utc_z, utcnow
from .inventory import new_id


class Client(db.Model):
    """
    Client registry entry.

    document_id is the national ID printed on receipts; it is intentionally
    not unique (families share one, typos get re-entered).
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.Index("ix_clients_created_at", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    document_id = db.Column(db.String(64), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "document_id": self.document_id,
            "phone": self.phone or "",
            "address": self.address,
            "created_at": to_utc_z(self.created_at),
        }
