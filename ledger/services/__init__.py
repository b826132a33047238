"""Services package."""

from ledger.services.backup import (
    ImportFormatError,
    export_csv,
    export_json,
    normalize_record,
    parse_csv_document,
    parse_json_document,
)
from ledger.services.preferences import PreferencesStore, clamp_percentage
from ledger.services.storage import (
    BackendUnavailableError,
    DuplicateError,
    FlatFileInvoiceStore,
    InvoiceStoreInterface,
    KeyValueFile,
    NotFoundError,
    SqliteInvoiceStore,
    StorageError,
    open_invoice_store,
)

__all__ = [
    # Backup
    "ImportFormatError",
    "export_csv",
    "export_json",
    "normalize_record",
    "parse_csv_document",
    "parse_json_document",
    # Preferences
    "PreferencesStore",
    "clamp_percentage",
    # Storage services
    "BackendUnavailableError",
    "DuplicateError",
    "FlatFileInvoiceStore",
    "InvoiceStoreInterface",
    "KeyValueFile",
    "NotFoundError",
    "SqliteInvoiceStore",
    "StorageError",
    "open_invoice_store",
]
