# Overview: XLSX import/export of clients and products.

"""
Spreadsheet import/export.

Headers are matched loosely: lowercased, accents folded, everything but
[a-z0-9] dropped, then looked up in per-column alias lists, so
"Carnet Identidad", "carnetIdentidad" and "CI" all land on document_id.
Exports use the same canonical headers, so an exported workbook can be
imported back unchanged.
"""

from __future__ import annotations

import io
import re
import unicodedata
import zipfile
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..validation import ValidationError, is_valid_phone, parse_amount_cents, format_amount
from ..time_utils import utcnow
from . import clients_service, products_service


XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

CLIENT_COLUMN_ALIASES: dict[str, list[str]] = {
    "name": ["nombre", "name", "clientenombre"],
    "document_id": ["ci", "carnet", "carnetidentidad", "documento", "dni", "documentid"],
    "phone": ["telefono", "celular", "phone", "telefonootelefono", "telefonoocelular"],
    "address": ["direccion", "address", "direccioncliente"],
}

PRODUCT_COLUMN_ALIASES: dict[str, list[str]] = {
    "name": ["nombre", "productonombre", "name"],
    "color": ["color"],
    "stock": ["stock", "existencias", "cantidad"],
    "cost": ["costo", "costobs", "costounitario", "costounitarioenbs", "cost"],
    "sale_price": ["precioventa", "precioventabs", "preciounitario", "precio", "saleprice"],
}

# Header labels written on export/template
CLIENT_HEADERS = ["nombre", "carnetIdentidad", "telefono", "direccion", "fechaRegistro"]
PRODUCT_HEADERS = ["nombre", "color", "stock", "costo", "precioVenta", "fechaRegistro"]

CLIENT_LABELS = {"name": "nombre", "document_id": "carnetIdentidad", "phone": "telefono", "address": "direccion"}
PRODUCT_LABELS = {"name": "nombre", "color": "color", "stock": "stock", "cost": "costo", "sale_price": "precioVenta"}

NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
INT_RE = re.compile(r"^\d+$")


class SpreadsheetError(ValueError):
    """The uploaded file cannot be processed at all."""


@dataclass
class ImportResult:
    created: list = field(default_factory=list)
    issues: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "created": [entity.to_dict() for entity in self.created],
            "created_count": len(self.created),
            "issues": self.issues,
        }


def normalize_header(value: Any) -> str:
    text = unicodedata.normalize("NFKD", str(value or ""))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return NON_ALNUM_RE.sub("", text.lower())


def map_headers(header_row: Iterable[Any], aliases: dict[str, list[str]]) -> dict[str, int]:
    """Canonical column -> index of the first matching header cell."""
    lookup = {normalize_header(alias): canonical for canonical, variants in aliases.items() for alias in variants}
    mapping: dict[str, int] = {}
    for index, cell in enumerate(header_row):
        canonical = lookup.get(normalize_header(cell))
        if canonical and canonical not in mapping:
            mapping[canonical] = index
    return mapping


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return ""
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value).strip()


def _read_rows(data: bytes) -> list[tuple]:
    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise SpreadsheetError("The file is not a valid .xlsx workbook") from exc

    try:
        if not workbook.sheetnames:
            raise SpreadsheetError("The workbook has no sheets")
        sheet = workbook[workbook.sheetnames[0]]
        rows = [tuple(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()

    if len(rows) < 2:
        raise SpreadsheetError("The file must include a header row and at least one data row")
    return rows


def _iter_records(data: bytes, aliases: dict[str, list[str]], labels: dict[str, str]):
    """Yield (sheet_row_number, {canonical: (raw, text)}) for each non-blank row."""
    rows = _read_rows(data)
    mapping = map_headers(rows[0], aliases)

    missing = [labels[column] for column in aliases if column not in mapping]
    if missing:
        raise SpreadsheetError(f"Missing required columns: {', '.join(missing)}")

    for offset, row in enumerate(rows[1:], start=2):
        texts = [_cell_text(v) for v in row]
        if all(t == "" for t in texts):
            continue
        record = {}
        for column, index in mapping.items():
            raw = row[index] if index < len(row) else None
            text = texts[index] if index < len(texts) else ""
            record[column] = (raw, text)
        yield offset, record


def _import(
    data: bytes,
    aliases: dict[str, list[str]],
    labels: dict[str, str],
    parse_row: Callable[[dict], dict],
    save: Callable[[dict], Any],
) -> ImportResult:
    result = ImportResult()
    parsed: list[tuple[int, dict]] = []
    for line_number, record in _iter_records(data, aliases, labels):
        try:
            parsed.append((line_number, parse_row(record)))
        except ValidationError as e:
            result.issues.append(f"Row {line_number}: {e}")

    for line_number, payload in parsed:
        try:
            result.created.append(save(payload))
        except ValidationError as e:
            result.issues.append(f"Row {line_number}: {e}")
    return result


# =============================================================================
# Clients
# =============================================================================

def _parse_client_row(record: dict) -> dict:
    name = record["name"][1]
    document_id = record["document_id"][1]
    phone = record["phone"][1]
    address = record["address"][1]

    if not name or not document_id or not address:
        raise ValidationError("missing required fields")
    if not is_valid_phone(phone):
        raise ValidationError("invalid phone")

    return {"name": name, "document_id": document_id, "phone": phone, "address": address}


def import_clients(data: bytes) -> ImportResult:
    """Create one client per valid row; invalid rows are reported and skipped."""
    return _import(
        data,
        CLIENT_COLUMN_ALIASES,
        CLIENT_LABELS,
        _parse_client_row,
        lambda payload: clients_service.upsert_client(payload=payload),
    )


# =============================================================================
# Products
# =============================================================================

def _parse_product_row(record: dict) -> dict:
    name = record["name"][1]
    color = record["color"][1]
    stock_raw, stock_text = record["stock"]

    if not name or not color:
        raise ValidationError("missing required fields")

    if isinstance(stock_raw, int) and not isinstance(stock_raw, bool):
        stock = stock_raw
    elif isinstance(stock_raw, float) and stock_raw.is_integer():
        stock = int(stock_raw)
    elif INT_RE.match(stock_text):
        stock = int(stock_text)
    else:
        stock = -1
    if stock < 0:
        raise ValidationError("invalid stock")

    cost = parse_amount_cents(record["cost"][0] if record["cost"][0] is not None else record["cost"][1])
    sale_price = parse_amount_cents(
        record["sale_price"][0] if record["sale_price"][0] is not None else record["sale_price"][1]
    )
    if cost is None or sale_price is None:
        raise ValidationError("invalid amount format")
    if sale_price < cost:
        raise ValidationError("sale price cannot be lower than cost")

    return {
        "name": name,
        "color": color,
        "stock": stock,
        "cost_cents": cost,
        "sale_price_cents": sale_price,
    }


def import_products(data: bytes) -> ImportResult:
    """Create one product per valid row; invalid rows are reported and skipped."""
    return _import(
        data,
        PRODUCT_COLUMN_ALIASES,
        PRODUCT_LABELS,
        _parse_product_row,
        lambda payload: products_service.upsert_product(payload=payload),
    )


# =============================================================================
# Export
# =============================================================================

def build_workbook(rows: list[list[Any]], sheet_name: str) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_name
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _registered_at(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else ""


def export_clients(clients: list) -> bytes:
    rows = [CLIENT_HEADERS]
    for client in clients:
        rows.append([
            client.name,
            client.document_id,
            client.phone or "",
            client.address,
            _registered_at(client.created_at),
        ])
    return build_workbook(rows, "Clients")


def export_products(products: list) -> bytes:
    rows = [PRODUCT_HEADERS]
    for product in products:
        rows.append([
            product.name,
            product.color,
            product.stock,
            format_amount(product.cost_cents),
            format_amount(product.sale_price_cents),
            _registered_at(product.created_at),
        ])
    return build_workbook(rows, "Inventory")


def clients_template() -> bytes:
    return build_workbook([
        CLIENT_HEADERS[:-1],
        ["Maria Fernanda Lopez", "7896543 LP", "+591 765-43210", "Av. Busch #234, La Paz"],
    ], "Template")


def products_template() -> bytes:
    return build_workbook([
        PRODUCT_HEADERS[:-1],
        ["Smart Shirt", "Blue", "25", "120,00", "210,00"],
    ], "Template")


def export_filename(prefix: str) -> str:
    return f"{prefix}-{utcnow().date().isoformat()}.xlsx"
