"""
Shop configuration documents.

Every setting is a whole JSON document stored under a fixed key in the
settings table. Documents are read and written in full; callers get a
default document when none has been stored yet.
"""
from __future__ import annotations

import copy
import math
import uuid
from typing import Any

from ..extensions import db
from ..models import Setting
from ..models.orders import ORDER_KIND_SALE, ORDER_KIND_SALES_ORDER
from ..validation import ValidationError, ConflictError, parse_strict_int
from .storage import guarded
from . import sequence_service


USERS_KEY = "users"
TICKETS_KEY = "tickets-config"
LOW_STOCK_THRESHOLD_KEY = "low-stock-threshold"

DEFAULT_LOW_STOCK_THRESHOLD = 5

# No admin credentials until initial setup has run
DEFAULT_USERS_CONFIG: dict = {
    "admin": {"username": "", "password_hash": ""},
    "operators": [],
}

DEFAULT_TICKETS_CONFIG: dict = {
    "company_name": "ShopDesk",
    "subtitle": "Inventory Management System",
    "sale": {"next_number": 1, "farewell": "Thank you for your purchase!"},
    "order": {"next_number": 1, "farewell": "Thank you for your preference!"},
}

# Ticket config side -> order kind whose counter it shows
TICKET_SIDES = {
    "sale": ORDER_KIND_SALE,
    "order": ORDER_KIND_SALES_ORDER,
}


# =============================================================================
# Raw key/value access
# =============================================================================

@guarded
def get_setting(key: str, default: Any = None) -> Any:
    row = db.session.get(Setting, key)
    if row is None or row.value is None:
        return copy.deepcopy(default)
    return copy.deepcopy(row.value)


def _put_setting(key: str, value: Any) -> None:
    row = db.session.get(Setting, key)
    if row is None:
        db.session.add(Setting(key=key, value=value))
    else:
        # Reassign so the JSON column is marked dirty
        row.value = value


@guarded
def set_setting(key: str, value: Any) -> None:
    """Create or replace the whole document stored under key."""
    _put_setting(key, value)
    db.session.commit()


# =============================================================================
# Users document
# =============================================================================

def _is_users_config(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and isinstance(value.get("admin"), dict)
        and isinstance(value.get("operators"), list)
    )


def get_users_config() -> dict:
    """Stored users document (with password hashes) or the default."""
    value = get_setting(USERS_KEY)
    if not _is_users_config(value):
        return copy.deepcopy(DEFAULT_USERS_CONFIG)
    return value


def public_users_config(cfg: dict) -> dict:
    """Users document without password hashes, for API responses."""
    return {
        "admin": {
            "username": cfg["admin"].get("username", ""),
            "has_password": bool(cfg["admin"].get("password_hash")),
        },
        "operators": [
            {
                "id": op.get("id"),
                "username": op.get("username", ""),
                "active": bool(op.get("active")),
                "has_password": bool(op.get("password_hash")),
            }
            for op in cfg["operators"]
        ],
    }


def _clean_username(value: Any, label: str) -> str:
    username = str(value or "").strip()
    if not username:
        raise ValidationError(f"{label} username is required")
    if len(username) > 128:
        raise ValidationError(f"{label} username exceeds max length 128")
    return username


def build_users_config(payload: dict, current: dict) -> dict:
    """
    Turn an edit payload into a storable users document.

    Passwords are hashed here. A user entry without "password" keeps the
    hash it already has (admin by position, operators by id); new users
    must come with a password.
    """
    from .auth_service import hash_password

    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    admin_in = payload.get("admin")
    operators_in = payload.get("operators", [])
    if not isinstance(admin_in, dict):
        raise ValidationError("admin is required")
    if not isinstance(operators_in, list):
        raise ValidationError("operators must be a list")

    admin_username = _clean_username(admin_in.get("username"), "Admin")
    if admin_in.get("password"):
        admin_hash = hash_password(admin_in["password"])
    else:
        admin_hash = current["admin"].get("password_hash", "")
    if not admin_hash:
        raise ValidationError("Admin password is required")

    existing_ops = {op.get("id"): op for op in current["operators"] if op.get("id")}
    seen = {admin_username.lower()}
    operators = []
    for entry in operators_in:
        if not isinstance(entry, dict):
            raise ValidationError("Each operator must be an object")
        username = _clean_username(entry.get("username"), "Operator")
        if username.lower() in seen:
            raise ConflictError(f"Username already in use: {username}")
        seen.add(username.lower())

        op_id = entry.get("id") or str(uuid.uuid4())
        if entry.get("password"):
            password_hash = hash_password(entry["password"])
        elif op_id in existing_ops and existing_ops[op_id].get("password_hash"):
            password_hash = existing_ops[op_id]["password_hash"]
        else:
            raise ValidationError(f"Password is required for operator {username}")

        operators.append({
            "id": op_id,
            "username": username,
            "password_hash": password_hash,
            "active": bool(entry.get("active", True)),
        })

    return {
        "admin": {"username": admin_username, "password_hash": admin_hash},
        "operators": operators,
    }


@guarded
def save_users_config(cfg: dict) -> None:
    if not _is_users_config(cfg):
        raise ValidationError("Invalid users configuration")
    _put_setting(USERS_KEY, cfg)
    db.session.commit()


# =============================================================================
# Tickets document
# =============================================================================

@guarded
def get_tickets_config() -> dict:
    """
    Ticket header/footer texts plus the next number per side.

    next_number always reflects the live ticket sequence, not whatever was
    last saved in the document.
    """
    value = get_setting(TICKETS_KEY)
    cfg = copy.deepcopy(DEFAULT_TICKETS_CONFIG)
    if isinstance(value, dict):
        for field in ("company_name", "subtitle"):
            if isinstance(value.get(field), str) and value[field].strip():
                cfg[field] = value[field]
        for side in TICKET_SIDES:
            stored = value.get(side)
            if isinstance(stored, dict) and isinstance(stored.get("farewell"), str):
                cfg[side]["farewell"] = stored["farewell"]

    for side, kind in TICKET_SIDES.items():
        cfg[side]["next_number"] = sequence_service.peek_next_number(kind)
    return cfg


def _clean_text(value: Any, field: str, *, required: bool = True, max_len: int = 255) -> str:
    text = str(value or "").strip()
    if required and not text:
        raise ValidationError(f"{field} is required")
    if len(text) > max_len:
        raise ValidationError(f"{field} exceeds max length {max_len}")
    return text


@guarded
def save_tickets_config(payload: dict) -> dict:
    """Validate and store the tickets document; resets counters when next_number is given."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    current = get_tickets_config()
    cfg = {
        "company_name": _clean_text(payload.get("company_name", current["company_name"]), "company_name"),
        "subtitle": _clean_text(payload.get("subtitle", current["subtitle"]), "subtitle", required=False),
    }

    next_numbers: dict[str, int] = {}
    for side in TICKET_SIDES:
        side_in = payload.get(side, {})
        if not isinstance(side_in, dict):
            raise ValidationError(f"{side} must be an object")
        cfg[side] = {
            "farewell": _clean_text(
                side_in.get("farewell", current[side]["farewell"]),
                f"{side}.farewell",
                required=False,
            ),
        }
        if side_in.get("next_number") is not None:
            number = parse_strict_int(side_in["next_number"], f"{side}.next_number")
            if number < 1:
                raise ValidationError(f"{side}.next_number must be >= 1")
            next_numbers[side] = number

    _put_setting(TICKETS_KEY, cfg)
    for side, number in next_numbers.items():
        sequence_service.set_next_number(TICKET_SIDES[side], number)
    db.session.commit()

    return get_tickets_config()


# =============================================================================
# Low-stock threshold
# =============================================================================

def get_low_stock_threshold() -> int:
    value = get_setting(LOW_STOCK_THRESHOLD_KEY, DEFAULT_LOW_STOCK_THRESHOLD)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        return DEFAULT_LOW_STOCK_THRESHOLD
    return int(value)


def set_low_stock_threshold(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError("threshold must be a number")
    threshold = max(0, int(value))
    set_setting(LOW_STOCK_THRESHOLD_KEY, threshold)
    return threshold
