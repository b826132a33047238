"""
Flat File Storage Implementation

The fallback backend: the whole invoice collection is one JSON array
stored under a fixed key of a key-value file.

TRADEOFFS:
- Every write rewrites the whole collection (fine for a personal ledger)
- No secondary indexes, so invoice numbers are not checked here;
  the validator is the only number check on this backend
- File I/O is blocking, so it runs in a worker thread
"""

import asyncio
from pathlib import Path
from typing import Sequence

from ledger.log import get_logger
from ledger.models.invoice import Invoice
from ledger.services.storage.interface import (
    DuplicateError,
    InvoiceStoreInterface,
    StorageError,
    ensure_unique_ids,
)
from ledger.services.storage.key_value import KeyValueFile


COLLECTION_KEY = "invoices"

logger = get_logger(__name__)


class FlatFileInvoiceStore(InvoiceStoreInterface):
    """
    Flat JSON implementation of invoice storage.

    A missing file or a missing collection key is an empty ledger.
    """

    backend_name = "flat"

    def __init__(self, path: Path):
        self._file = KeyValueFile(path)

    @property
    def path(self) -> Path:
        return self._file.path

    def _load(self) -> list[Invoice]:
        records = self._file.get(COLLECTION_KEY, [])
        if not isinstance(records, list):
            raise StorageError(
                f"Invoice collection in {self._file.path} is not a list"
            )
        try:
            return [Invoice.from_record(record) for record in records]
        except ValueError as e:
            raise StorageError(f"Malformed invoice in {self._file.path}: {e}") from e

    def _save(self, invoices: Sequence[Invoice]) -> None:
        self._file.set(COLLECTION_KEY, [invoice.to_record() for invoice in invoices])

    def _add(self, invoice: Invoice) -> str:
        invoices = self._load()
        if any(existing.id == invoice.id for existing in invoices):
            raise DuplicateError(f"Invoice id already exists: {invoice.id}")
        invoices.append(invoice)
        self._save(invoices)
        return invoice.id

    def _put(self, invoice: Invoice) -> str:
        invoices = self._load()
        for idx, existing in enumerate(invoices):
            if existing.id == invoice.id:
                invoices[idx] = invoice
                break
        else:
            invoices.append(invoice)
        self._save(invoices)
        return invoice.id

    def _delete(self, invoice_id: str) -> None:
        invoices = self._load()
        remaining = [invoice for invoice in invoices if invoice.id != invoice_id]
        if len(remaining) != len(invoices):
            self._save(remaining)

    def _replace(self, invoices: Sequence[Invoice]) -> None:
        ensure_unique_ids(invoices)
        self._save(invoices)

    async def get_all(self) -> list[Invoice]:
        return await asyncio.to_thread(self._load)

    async def add(self, invoice: Invoice) -> str:
        invoice_id = await asyncio.to_thread(self._add, invoice)
        logger.debug("invoice_added", backend=self.backend_name, invoice_id=invoice_id)
        return invoice_id

    async def put(self, invoice: Invoice) -> str:
        invoice_id = await asyncio.to_thread(self._put, invoice)
        logger.debug("invoice_put", backend=self.backend_name, invoice_id=invoice_id)
        return invoice_id

    async def delete(self, invoice_id: str) -> None:
        await asyncio.to_thread(self._delete, invoice_id)
        logger.debug("invoice_deleted", backend=self.backend_name, invoice_id=invoice_id)

    async def clear_and_import(self, invoices: Sequence[Invoice]) -> None:
        batch = list(invoices)
        await asyncio.to_thread(self._replace, batch)
        logger.info("invoices_replaced", backend=self.backend_name, count=len(batch))
