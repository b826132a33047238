"""
SQLite Storage Implementation

DESIGN DECISION: SQLite (through async SQLAlchemy + aiosqlite) is the
preferred backend because:
1. Real transactions, so a bulk import is all-or-nothing
2. A unique index on the invoice number guards against duplicates
   even if the validator is bypassed
3. No server to run; the database is a single local file

Secondary indexes (date, type, category, archived) exist for lookups
but the ledger still reads the full collection and filters in Python.
"""

from pathlib import Path
from typing import Optional, Sequence

from sqlalchemy import Boolean, Float, Index, String, delete, select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from ledger.log import get_logger
from ledger.models.invoice import Invoice
from ledger.services.storage.interface import (
    BackendUnavailableError,
    DuplicateError,
    InvoiceStoreInterface,
    StorageError,
    ensure_unique_ids,
)


# Stored in PRAGMA user_version; a newer file is refused
SCHEMA_VERSION = 1

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class InvoiceRow(Base):
    """One invoice per row. Column names follow the record keys."""

    __tablename__ = "invoices"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    number: Mapped[str] = mapped_column(String, nullable=False)
    date: Mapped[str] = mapped_column(String, default="", index=True)
    type: Mapped[str] = mapped_column(String, default="issued", index=True)
    entity: Mapped[str] = mapped_column(String, default="")
    concept: Mapped[str] = mapped_column(String, default="")
    base: Mapped[float] = mapped_column(Float, default=0.0)
    tax_pct: Mapped[float] = mapped_column("taxPct", Float, default=21.0)
    payment: Mapped[str] = mapped_column(String, default="")
    category: Mapped[str] = mapped_column(String, default="", index=True)
    notes: Mapped[str] = mapped_column(String, default="")
    pdf_path: Mapped[str] = mapped_column("pdfPath", String, default="")
    archived: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    __table_args__ = (
        Index("ix_invoices_number", "number", unique=True),
    )


def _invoice_to_row(invoice: Invoice) -> InvoiceRow:
    """Convert an Invoice to a table row."""
    return InvoiceRow(
        id=invoice.id,
        number=invoice.number,
        date=invoice.date,
        type=invoice.type.value,
        entity=invoice.entity,
        concept=invoice.concept,
        base=invoice.base,
        tax_pct=invoice.tax_pct,
        payment=invoice.payment,
        category=invoice.category,
        notes=invoice.notes,
        pdf_path=invoice.pdf_path,
        archived=invoice.archived,
    )


def _row_to_invoice(row: InvoiceRow) -> Invoice:
    """Convert a table row to an Invoice."""
    return Invoice(
        id=row.id,
        number=row.number,
        date=row.date,
        type=row.type,
        entity=row.entity,
        concept=row.concept,
        base=row.base,
        tax_pct=row.tax_pct,
        payment=row.payment,
        category=row.category,
        notes=row.notes,
        pdf_path=row.pdf_path,
        archived=row.archived,
    )


def _is_locked(exc: BaseException) -> bool:
    return isinstance(exc, OperationalError) and "locked" in str(exc).lower()


# Another process holding the write lock is transient; retry briefly
retry_on_lock = retry(
    retry=retry_if_exception(_is_locked),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
    reraise=True,
)


class SqliteInvoiceStore(InvoiceStoreInterface):
    """
    SQLite implementation of invoice storage.

    Call open() before any other method. open() raises
    BackendUnavailableError for any failure so the caller can fall back.
    """

    backend_name = "indexed"

    def __init__(self, database_path: Path, busy_timeout: float = 5.0):
        self._database_path = Path(database_path)
        self._busy_timeout = busy_timeout
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def database_path(self) -> Path:
        return self._database_path

    async def open(self) -> None:
        """Create the engine, check the schema version and create the table."""
        try:
            self._database_path.parent.mkdir(parents=True, exist_ok=True)
            self._engine = create_async_engine(
                f"sqlite+aiosqlite:///{self._database_path}",
                connect_args={"timeout": self._busy_timeout},
            )
            async with self._engine.begin() as conn:
                result = await conn.exec_driver_sql("PRAGMA user_version")
                version = result.scalar() or 0
                if version > SCHEMA_VERSION:
                    raise BackendUnavailableError(
                        f"Database schema version {version} is newer than "
                        f"supported version {SCHEMA_VERSION}"
                    )
                await conn.run_sync(Base.metadata.create_all)
                if version < SCHEMA_VERSION:
                    await conn.exec_driver_sql(f"PRAGMA user_version = {SCHEMA_VERSION}")
            self._session_factory = async_sessionmaker(
                self._engine, expire_on_commit=False
            )
        except BackendUnavailableError:
            await self.close()
            raise
        except Exception as e:
            await self.close()
            raise BackendUnavailableError(
                f"Failed to open database {self._database_path}: {e}"
            ) from e

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise BackendUnavailableError("Database is not open")
        return self._session_factory

    @retry_on_lock
    async def _fetch_all(self) -> list[Invoice]:
        async with self._sessions()() as session:
            rows = await session.scalars(select(InvoiceRow))
            return [_row_to_invoice(row) for row in rows]

    @retry_on_lock
    async def _insert(self, invoice: Invoice) -> None:
        async with self._sessions()() as session:
            session.add(_invoice_to_row(invoice))
            await session.commit()

    @retry_on_lock
    async def _upsert(self, invoice: Invoice) -> None:
        async with self._sessions()() as session:
            await session.merge(_invoice_to_row(invoice))
            await session.commit()

    @retry_on_lock
    async def _remove(self, invoice_id: str) -> None:
        async with self._sessions()() as session:
            await session.execute(delete(InvoiceRow).where(InvoiceRow.id == invoice_id))
            await session.commit()

    @retry_on_lock
    async def _replace(self, invoices: Sequence[Invoice]) -> None:
        # Clear and inserts share one transaction: all or nothing
        async with self._sessions()() as session:
            async with session.begin():
                await session.execute(delete(InvoiceRow))
                session.add_all([_invoice_to_row(invoice) for invoice in invoices])

    async def get_all(self) -> list[Invoice]:
        try:
            return await self._fetch_all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read invoices: {e}") from e

    async def add(self, invoice: Invoice) -> str:
        try:
            await self._insert(invoice)
        except IntegrityError as e:
            raise DuplicateError(
                f"Invoice id or number already exists: {invoice.id} / {invoice.number}"
            ) from e
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to add invoice: {e}") from e
        logger.debug("invoice_added", backend=self.backend_name, invoice_id=invoice.id)
        return invoice.id

    async def put(self, invoice: Invoice) -> str:
        try:
            await self._upsert(invoice)
        except IntegrityError as e:
            raise DuplicateError(f"Invoice number already exists: {invoice.number}") from e
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save invoice: {e}") from e
        logger.debug("invoice_put", backend=self.backend_name, invoice_id=invoice.id)
        return invoice.id

    async def delete(self, invoice_id: str) -> None:
        try:
            await self._remove(invoice_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete invoice: {e}") from e
        logger.debug("invoice_deleted", backend=self.backend_name, invoice_id=invoice_id)

    async def clear_and_import(self, invoices: Sequence[Invoice]) -> None:
        batch = list(invoices)
        ensure_unique_ids(batch)
        try:
            await self._replace(batch)
        except IntegrityError as e:
            raise DuplicateError(f"Import rejected, duplicate invoice number: {e.orig}") from e
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to import invoices: {e}") from e
        logger.info("invoices_replaced", backend=self.backend_name, count=len(batch))

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_factory = None
