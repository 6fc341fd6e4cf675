# Overview: Per-kind ticket numbering backed by the ticket_sequences table.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import TicketSequence
from ..models.orders import ORDER_KINDS


class SequenceError(ValueError):
    """Raised when ticket sequence operations fail."""


def _require_kind(kind: str) -> None:
    if kind not in ORDER_KINDS:
        raise SequenceError(f"Unknown order kind: {kind}")


def _current_next(kind: str) -> int:
    return (
        db.session.query(TicketSequence.next_number)
        .filter_by(kind=kind)
        .scalar()
    )


def next_ticket_number(kind: str) -> int:
    """
    Atomically allocate the next ticket number for an order kind.

    Runs inside the caller's transaction and does not commit: if the order
    insert fails afterwards the rollback also returns the number.
    """
    _require_kind(kind)

    stmt = (
        update(TicketSequence)
        .where(TicketSequence.kind == kind)
        .values(next_number=TicketSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        return _current_next(kind) - 1

    # First ticket of this kind. Two first-ever submissions racing here collide
    # on the primary key and one of them fails; ensure_ticket_sequences() at
    # bootstrap avoids that window entirely.
    db.session.add(TicketSequence(kind=kind, next_number=2))
    db.session.flush()
    return 1


def ensure_ticket_sequences() -> None:
    """Create missing counter rows for every kind. Commits."""
    for kind in ORDER_KINDS:
        if db.session.get(TicketSequence, kind) is None:
            db.session.add(TicketSequence(kind=kind, next_number=1))
    db.session.commit()


def peek_next_number(kind: str) -> int:
    """Number the next order of this kind will receive (no allocation)."""
    _require_kind(kind)
    current = _current_next(kind)
    return current if current is not None else 1


def set_next_number(kind: str, next_number: int) -> None:
    """
    Reset the counter (admin ticket settings). Does not commit.

    Numbers already used by existing orders are still protected by the
    (kind, sequence) unique constraint.
    """
    _require_kind(kind)
    if isinstance(next_number, bool) or not isinstance(next_number, int) or next_number < 1:
        raise SequenceError("next_number must be an integer >= 1")

    row = db.session.get(TicketSequence, kind)
    if row is None:
        db.session.add(TicketSequence(kind=kind, next_number=next_number))
    else:
        row.next_number = next_number
    db.session.flush()
