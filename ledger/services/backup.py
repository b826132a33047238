"""
Backup Export and Import

Exports the full invoice collection as JSON (a list of records) or CSV
(one header row, fixed column order). Imports either form back.

IMPORTANT: Import never rejects a single malformed invoice. Every element
is coerced into a valid record (fresh id, parse-or-zero numbers, boolean
archived flag). Only a document that is not a list of records at all
is rejected, and that happens before anything is written.
"""

import csv
import io
import json
from typing import Any, Iterable, Sequence

from ledger.models.invoice import (
    RECORD_FIELDS,
    Invoice,
    InvoiceType,
    new_invoice_id,
    to_flag,
    to_number,
)


class ImportFormatError(Exception):
    """The backup document cannot be read as a list of invoices."""
    pass


# =============================================================================
# EXPORT
# =============================================================================

def export_json(invoices: Iterable[Invoice]) -> str:
    """Serialize invoices as an indented JSON array of records."""
    return json.dumps(
        [invoice.to_record() for invoice in invoices],
        ensure_ascii=False,
        indent=2,
    )


def _format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value)


def export_csv(invoices: Iterable[Invoice]) -> str:
    """
    Serialize invoices as CSV.

    Columns are always RECORD_FIELDS in order. Cells holding a comma,
    a quote or a line break are quoted, with inner quotes doubled.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(RECORD_FIELDS)
    for invoice in invoices:
        record = invoice.to_record()
        writer.writerow([_format_cell(record.get(field)) for field in RECORD_FIELDS])
    return buffer.getvalue()


# =============================================================================
# IMPORT
# =============================================================================

def _text(value: Any) -> str:
    """Falsy values (missing, None, empty) become an empty string."""
    return str(value) if value else ""


def normalize_record(item: Any) -> Invoice:
    """
    Coerce one imported element into an Invoice.

    - missing id gets a fresh one
    - type is 'received' only when exactly 'received'
    - base and taxPct are parsed, unreadable values become 0
    - archived is coerced to a boolean
    """
    if not isinstance(item, dict):
        item = {}

    invoice_type = (
        InvoiceType.RECEIVED
        if item.get("type") == InvoiceType.RECEIVED.value
        else InvoiceType.ISSUED
    )

    return Invoice(
        id=_text(item.get("id")) or new_invoice_id(),
        number=_text(item.get("number")).strip(),
        date=_text(item.get("date")),
        type=invoice_type,
        entity=_text(item.get("entity")),
        concept=_text(item.get("concept")),
        base=to_number(item.get("base")),
        tax_pct=to_number(item.get("taxPct")),
        payment=_text(item.get("payment")),
        category=_text(item.get("category")),
        notes=_text(item.get("notes")),
        pdf_path=_text(item.get("pdfPath")),
        archived=to_flag(item.get("archived")),
    )


def normalize_records(items: Sequence[Any]) -> list[Invoice]:
    return [normalize_record(item) for item in items]


def parse_json_document(text: str) -> list[Invoice]:
    """
    Parse a JSON backup.

    Raises:
        ImportFormatError: If the text is not JSON or not a JSON array
    """
    try:
        document = json.loads(text)
    except ValueError as e:
        raise ImportFormatError(f"Invalid JSON document: {e}") from e

    if not isinstance(document, list):
        raise ImportFormatError("Invalid format: expected a list of invoices")

    return normalize_records(document)


def parse_csv_document(text: str) -> list[Invoice]:
    """
    Parse a CSV backup produced by export_csv.

    Raises:
        ImportFormatError: If there is no header row with a number column
    """
    try:
        reader = csv.DictReader(io.StringIO(text))
        fieldnames = reader.fieldnames
        if not fieldnames or "number" not in fieldnames:
            raise ImportFormatError("Invalid format: missing CSV header row")
        rows = list(reader)
    except csv.Error as e:
        raise ImportFormatError(f"Invalid CSV document: {e}") from e

    return normalize_records(rows)
