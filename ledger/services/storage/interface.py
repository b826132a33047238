"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for invoice storage.
This allows us to:
1. Prefer an indexed SQLite database when it can be opened
2. Fall back to a flat JSON file when it cannot
3. Keep the ledger and its tests independent of the active backend

The interface is intentionally small: read everything, write one record,
or replace everything. Filtering and totals happen in memory.
"""

from abc import ABC, abstractmethod
from typing import Sequence

from ledger.models.invoice import Invoice


class InvoiceStoreInterface(ABC):
    """
    Abstract interface for invoice storage operations.

    Every mutating method commits before it returns.
    """

    backend_name: str = "abstract"

    @abstractmethod
    async def get_all(self) -> list[Invoice]:
        """
        Return every stored invoice.

        Order is unspecified; callers sort when order matters.
        An empty ledger returns an empty list.
        """
        pass

    @abstractmethod
    async def add(self, invoice: Invoice) -> str:
        """
        Insert a new invoice.

        Args:
            invoice: Invoice with a freshly generated id

        Returns:
            The invoice id

        Raises:
            DuplicateError: If the id (or, where indexed, the number) exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def put(self, invoice: Invoice) -> str:
        """
        Insert or replace an invoice by id.

        Returns:
            The invoice id

        Raises:
            DuplicateError: If the number belongs to another stored invoice
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, invoice_id: str) -> None:
        """
        Delete an invoice by id.

        Deleting an id that is not stored is a no-op.
        """
        pass

    @abstractmethod
    async def clear_and_import(self, invoices: Sequence[Invoice]) -> None:
        """
        Replace the whole collection with the given invoices.

        Either the full batch is stored or the previous collection
        is left untouched.

        Raises:
            DuplicateError: If the batch repeats an id, or (indexed backend
                only) repeats a number or collides on the number index
            StorageError: If the write fails
        """
        pass

    async def close(self) -> None:
        """Release backend resources."""
        return None


def ensure_unique_ids(invoices: Sequence[Invoice]) -> None:
    """Reject a batch that repeats an id before anything is written."""
    seen: set[str] = set()
    for invoice in invoices:
        if invoice.id in seen:
            raise DuplicateError(f"Duplicate invoice id in batch: {invoice.id}")
        seen.add(invoice.id)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class BackendUnavailableError(StorageError):
    """Could not open the storage backend."""
    pass
