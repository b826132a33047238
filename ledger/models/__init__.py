"""
Data Models Package

This package contains all Pydantic models used in the Invoice Ledger.
All data flowing through the system must conform to these schemas.
"""

from ledger.models.invoice import (
    DEFAULT_TAX_PCT,
    RECORD_FIELDS,
    UNCATEGORIZED,
    GroupedTotals,
    Invoice,
    InvoiceFilter,
    InvoiceType,
    LedgerView,
    Totals,
    ValidationIssue,
    ValidationResult,
    new_invoice_id,
    parse_iso_date,
    to_flag,
    to_number,
    to_text,
)

__all__ = [
    "DEFAULT_TAX_PCT",
    "RECORD_FIELDS",
    "UNCATEGORIZED",
    "GroupedTotals",
    "Invoice",
    "InvoiceFilter",
    "InvoiceType",
    "LedgerView",
    "Totals",
    "ValidationIssue",
    "ValidationResult",
    "new_invoice_id",
    "parse_iso_date",
    "to_flag",
    "to_number",
    "to_text",
]
