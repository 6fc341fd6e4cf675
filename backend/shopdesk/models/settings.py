from __future__ import annotations

from ..extensions import db
from shopdesk.time_utils import to_utc_z, utcnow


class Setting(db.Model):
    """
    Shop-wide key/value configuration.

    Each value is a whole JSON document (users, tickets-config, ...) that is
    read and written in full.
    """
    __tablename__ = "settings"

    key = db.Column(db.String(128), primary_key=True)
    value = db.Column(db.JSON, nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=db.func.now(),
    )

    def to_dict(self):
        return {
            "key": self.key,
            "value": self.value,
            "updated_at": to_utc_z(self.updated_at),
        }
