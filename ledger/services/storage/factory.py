"""
Backend Selection

The indexed backend is tried once at startup. If it is disabled or
cannot be opened, the flat backend is used for the rest of the session.
The choice is never revisited.
"""

from typing import Optional

from ledger.config import StorageSettings, get_settings
from ledger.log import get_logger
from ledger.services.storage.flat_file import FlatFileInvoiceStore
from ledger.services.storage.interface import InvoiceStoreInterface, StorageError
from ledger.services.storage.sqlite import SqliteInvoiceStore


logger = get_logger(__name__)


async def open_invoice_store(
    settings: Optional[StorageSettings] = None,
) -> InvoiceStoreInterface:
    """
    Open the preferred invoice store, falling back to the flat file.

    Open failures are logged, not raised.
    """
    settings = settings or get_settings().storage

    if settings.indexed_backend_enabled:
        store = SqliteInvoiceStore(
            settings.database_path,
            busy_timeout=settings.busy_timeout_seconds,
        )
        try:
            await store.open()
        except StorageError as e:
            logger.warning(
                "store_fallback",
                reason=str(e),
                flat_path=str(settings.flat_path),
            )
        else:
            logger.info(
                "store_opened",
                backend=store.backend_name,
                path=str(settings.database_path),
            )
            return store
    else:
        logger.info("indexed_backend_disabled")

    flat_store = FlatFileInvoiceStore(settings.flat_path)
    logger.info(
        "store_opened",
        backend=flat_store.backend_name,
        path=str(settings.flat_path),
    )
    return flat_store
