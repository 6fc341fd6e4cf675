# Overview: Maps database failures to StorageError for the HTTP layer.

from __future__ import annotations

from contextlib import contextmanager
from functools import wraps

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db


class StorageError(RuntimeError):
    """
    The database could not be reached or refused the operation.

    The original exception is chained (__cause__) so it can be logged;
    clients only ever see the generic message.
    """
    def __init__(self, message: str = "Could not save or load data"):
        super().__init__(message)


@contextmanager
def storage_guard():
    """Roll back and re-raise SQLAlchemy failures as StorageError."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError() from exc


def guarded(func):
    """Decorator form of storage_guard for repository functions."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        with storage_guard():
            return func(*args, **kwargs)
    return wrapper
