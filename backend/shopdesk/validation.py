from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, JSON
from sqlalchemy.orm import DeclarativeMeta


# Maximum amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999

PHONE_STRIP_RE = re.compile(r"[\s+\-]")

IMAGE_KEYS = {"name", "size", "type", "data_url"}


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate operator username)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required when creating
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def parse_strict_int(value: Any, field: str) -> int:
    """Accept ints and plain digit strings; reject floats, bools and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_strict_int(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # JSON and anything else: leave as-is, rule functions check shape
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        if isinstance(col.type, JSON) and not isinstance(val, (dict, list)):
            raise ValidationError(f"{k} must be an object")

        patch[k] = val

    return patch


def is_valid_phone(value: str | None) -> bool:
    """7 to 15 digits once spaces, '+' and '-' are removed."""
    if value is None:
        return False
    trimmed = value.strip()
    if not trimmed:
        return False
    digits = PHONE_STRIP_RE.sub("", trimmed)
    return digits.isdigit() and 7 <= len(digits) <= 15


def _check_amount(patch: dict, field: str) -> None:
    if field in patch and patch[field] is not None:
        amount = patch[field]
        if amount < 0:
            raise ValidationError(f"{field} must be >= 0")
        if amount > MAX_AMOUNT_CENTS:
            raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS}")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "stock" in patch and patch["stock"] is not None and patch["stock"] < 0:
        raise ValidationError("stock must be >= 0")

    _check_amount(patch, "cost_cents")
    _check_amount(patch, "sale_price_cents")

    image = patch.get("image")
    if image is not None:
        if not isinstance(image, dict) or not IMAGE_KEYS.issubset(image.keys()):
            raise ValidationError("image must have name, size, type and data_url")
        if not str(image.get("type", "")).startswith("image/"):
            raise ValidationError("image type must be an image/* MIME type")


def enforce_price_not_below_cost(cost_cents: int, sale_price_cents: int) -> None:
    # Only checked at data entry; stored rows are not re-validated
    if sale_price_cents < cost_cents:
        raise ValidationError("sale_price_cents cannot be lower than cost_cents")


def enforce_rules_client(patch: dict) -> None:
    if "phone" in patch and not is_valid_phone(patch["phone"]):
        raise ValidationError("phone must contain between 7 and 15 digits")


def parse_amount_cents(value: Any) -> int | None:
    """
    Parse a money amount into cents.

    - int/float values are taken as currency units (12.5 -> 1250)
    - "1.234,50" / "120,00": dots are thousand separators, comma is decimal
    - "12.50" (dot, no comma): English decimal notation
    Returns None when the value cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        units = Decimal(str(value))
    else:
        text = str(value).strip().replace(" ", "")
        if not text:
            return None
        if "." in text and "," not in text:
            normalized = text
        else:
            normalized = text.replace(".", "").replace(",", ".")
        try:
            units = Decimal(normalized)
        except InvalidOperation:
            return None
        if not units.is_finite():
            return None

    return int((units * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_amount(cents: int) -> str:
    """Cents to a plain "1234.50" string (spreadsheets, CSV)."""
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100}.{cents % 100:02d}"
