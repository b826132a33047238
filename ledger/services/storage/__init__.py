"""
Storage Services Package

Provides the abstract invoice store interface and its two backends:
an indexed SQLite database (preferred) and a flat JSON file (fallback).
"""

from ledger.services.storage.interface import (
    BackendUnavailableError,
    DuplicateError,
    InvoiceStoreInterface,
    NotFoundError,
    StorageError,
)
from ledger.services.storage.key_value import KeyValueFile
from ledger.services.storage.flat_file import FlatFileInvoiceStore
from ledger.services.storage.sqlite import SqliteInvoiceStore
from ledger.services.storage.factory import open_invoice_store

__all__ = [
    # Interface
    "InvoiceStoreInterface",
    # Exceptions
    "BackendUnavailableError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "FlatFileInvoiceStore",
    "KeyValueFile",
    "SqliteInvoiceStore",
    "open_invoice_store",
]
