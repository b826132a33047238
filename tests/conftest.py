"""Shared test fixtures for the Invoice Ledger test suite."""

import asyncio

import pytest

from ledger.models.invoice import Invoice, InvoiceType
from ledger.services.storage import FlatFileInvoiceStore, SqliteInvoiceStore


@pytest.fixture
def run():
    """
    Run a coroutine to completion on a loop owned by this test.

    Stores opened in a test stay bound to this one loop.
    """
    loop = asyncio.new_event_loop()
    yield loop.run_until_complete
    loop.run_until_complete(loop.shutdown_default_executor())
    loop.close()


@pytest.fixture(params=["indexed", "flat"])
def store(request, tmp_path, run):
    """An empty store for each backend."""
    if request.param == "indexed":
        backend = SqliteInvoiceStore(tmp_path / "invoices.db")
        run(backend.open())
    else:
        backend = FlatFileInvoiceStore(tmp_path / "invoices.json")
    yield backend
    run(backend.close())


def make_invoice(**overrides) -> Invoice:
    """A valid issued invoice; override any field."""
    fields = dict(
        number="F-001",
        date="2024-01-15",
        type=InvoiceType.ISSUED,
        entity="Acme S.L.",
        concept="Consulting",
        base=100.0,
        tax_pct=21.0,
    )
    fields.update(overrides)
    return Invoice(**fields)


@pytest.fixture
def sample_invoices() -> list[Invoice]:
    return [
        make_invoice(id="a", number="F-001", date="2024-01-15", base=100, tax_pct=21,
                     category="Software", notes="first client"),
        make_invoice(id="b", number="R-001", date="2024-02-10", type=InvoiceType.RECEIVED,
                     entity="Hosting Ltd", concept="Servers", base=40, tax_pct=10,
                     category="Infrastructure"),
        make_invoice(id="c", number="F-002", date="2024-02-20", base=200, tax_pct=21,
                     category="software", archived=True),
        make_invoice(id="d", number="R-002", date="2024-03-05", type=InvoiceType.RECEIVED,
                     entity="Office Co", concept="Paper", base=10, tax_pct=21),
    ]


@pytest.fixture
def invoice_factory():
    """Build valid invoices with overrides."""
    return make_invoice
