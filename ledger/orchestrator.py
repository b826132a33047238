"""
Main Orchestrator for Invoice Ledger

This module ties together storage, validation, backup and aggregation,
and defines the flows the UI calls:
1. Save (validate → add or put → reload)
2. Archive toggle and delete (write → reload)
3. Import (parse → normalize → replace everything → reload)
4. View (filter → totals → grouped aggregates)

DESIGN DECISION: The in-memory invoice list is a cache of the store.
It is rebuilt from the store after every write, never patched in place.
Each store call is awaited before the next one is issued.
"""

from typing import Optional, Sequence

from ledger.config import Settings, get_settings
from ledger.log import configure_logging, get_logger
from ledger.models.invoice import Invoice, InvoiceFilter, LedgerView
from ledger.queries import (
    apply_filters,
    compute_totals,
    group_by_category,
    group_by_month,
)
from ledger.services.backup import (
    export_csv,
    export_json,
    parse_csv_document,
    parse_json_document,
)
from ledger.services.preferences import PreferencesStore
from ledger.services.storage import (
    InvoiceStoreInterface,
    NotFoundError,
    StorageError,
    open_invoice_store,
)
from ledger.validation import InvoiceValidationError, InvoiceValidator


logger = get_logger(__name__)

_TEXT_FIELDS = ("number", "entity", "concept", "payment", "category", "notes", "pdf_path")


class InvoiceLedger:
    """
    Orchestrates every read and write of the invoice collection.

    The store is chosen once (see open_invoice_store) and never switched.
    """

    def __init__(
        self,
        store: InvoiceStoreInterface,
        validator: Optional[InvoiceValidator] = None,
    ):
        self._store = store
        self._validator = validator or InvoiceValidator()
        self._invoices: list[Invoice] = []

    @property
    def backend_name(self) -> str:
        return self._store.backend_name

    @property
    def invoices(self) -> list[Invoice]:
        """Cached collection as of the last load."""
        return list(self._invoices)

    def get(self, invoice_id: str) -> Optional[Invoice]:
        for invoice in self._invoices:
            if invoice.id == invoice_id:
                return invoice
        return None

    async def load_all(self) -> list[Invoice]:
        """Replace the cache with the stored collection."""
        self._invoices = await self._store.get_all()
        return self.invoices

    async def save_invoice(self, invoice: Invoice) -> Invoice:
        """
        Validate and store an invoice.

        New ids are added, known ids are replaced.

        Raises:
            InvoiceValidationError: If validation fails (nothing is written)
            DuplicateError: If the store rejects the number
            StorageError: If the write fails
        """
        invoice = invoice.model_copy(
            update={field: getattr(invoice, field).strip() for field in _TEXT_FIELDS}
        )

        result = self._validator.validate(invoice, self._invoices)
        if result.has_errors:
            logger.info(
                "invoice_rejected",
                invoice_id=invoice.id,
                issues=[issue.issue_type for issue in result.issues],
            )
            raise InvoiceValidationError(result)

        is_new = self.get(invoice.id) is None
        if is_new:
            await self._store.add(invoice)
        else:
            await self._store.put(invoice)

        await self.load_all()
        logger.info("invoice_saved", invoice_id=invoice.id, number=invoice.number, is_new=is_new)
        return invoice

    async def toggle_archived(self, invoice_id: str) -> Invoice:
        """Flip the archived flag of a stored invoice."""
        invoice = self.get(invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice not found: {invoice_id}")

        updated = invoice.model_copy(update={"archived": not invoice.archived})
        await self._store.put(updated)
        await self.load_all()
        logger.info("invoice_archived", invoice_id=invoice_id, archived=updated.archived)
        return updated

    async def delete_invoice(self, invoice_id: str) -> None:
        await self._store.delete(invoice_id)
        await self.load_all()
        logger.info("invoice_deleted", invoice_id=invoice_id)

    async def replace_all(self, invoices: Sequence[Invoice]) -> int:
        """
        Replace the stored collection with an already normalized batch.

        The cache is reloaded even when the store rejects the batch.
        """
        try:
            await self._store.clear_and_import(invoices)
        except StorageError as e:
            logger.error("import_failed", error=str(e), count=len(invoices))
            await self.load_all()
            raise

        await self.load_all()
        logger.info("import_completed", count=len(invoices), backend=self.backend_name)
        return len(invoices)

    async def import_json(self, text: str) -> int:
        """
        Restore from a JSON backup.

        Raises:
            ImportFormatError: Before any write, if the document is unusable
        """
        return await self.replace_all(parse_json_document(text))

    async def import_csv(self, text: str) -> int:
        """Restore from a CSV backup."""
        return await self.replace_all(parse_csv_document(text))

    def export_json(self) -> str:
        return export_json(self._invoices)

    def export_csv(self) -> str:
        return export_csv(self._invoices)

    def view(
        self,
        criteria: Optional[InvoiceFilter] = None,
        withholding_pct: float = 0.0,
    ) -> LedgerView:
        """
        Derive the list, totals and chart data for one filter.

        Totals and groupings are computed over the filtered invoices.
        """
        filtered = apply_filters(self._invoices, criteria)
        return LedgerView(
            invoices=filtered,
            totals=compute_totals(filtered, withholding_pct),
            by_category=group_by_category(filtered),
            by_month=group_by_month(filtered),
        )

    async def close(self) -> None:
        await self._store.close()


async def create_ledger(
    settings: Optional[Settings] = None,
) -> tuple[InvoiceLedger, PreferencesStore]:
    """
    Factory function to create the application components.

    Opens the preferred store (falling back if needed) and loads the
    collection into the cache.

    Returns:
        (ledger, preferences)
    """
    settings = settings or get_settings()
    app_settings = settings.app
    configure_logging(
        app_settings.effective_log_level,
        environment=app_settings.app_environment,
    )

    storage_settings = settings.storage
    store = await open_invoice_store(storage_settings)
    ledger = InvoiceLedger(store)
    await ledger.load_all()

    preferences = PreferencesStore(
        storage_settings.preferences_path,
        default_withholding_pct=app_settings.default_withholding_pct,
    )
    return ledger, preferences
