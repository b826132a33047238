"""
Tests for invoice storage

The contract tests run once per backend (see the store fixture).
Backend-specific behavior is tested separately below.
"""

import json
import sqlite3
import threading

import pytest

from ledger.config import StorageSettings
from ledger.services.storage import (
    BackendUnavailableError,
    DuplicateError,
    FlatFileInvoiceStore,
    KeyValueFile,
    SqliteInvoiceStore,
    StorageError,
    open_invoice_store,
)
from ledger.services.storage.flat_file import COLLECTION_KEY


def _hold_exclusive_lock(path):
    """Open a second connection holding an exclusive lock on the database."""
    conn = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
    conn.execute("BEGIN EXCLUSIVE")
    return conn


class TestStoreContract:
    """Behavior every backend must share."""

    def test_empty_store(self, store, run):
        assert run(store.get_all()) == []

    def test_add_and_get_all(self, store, run, invoice_factory):
        invoice = invoice_factory(id="a", pdf_path="docs/a.pdf", archived=True)
        assert run(store.add(invoice)) == "a"

        stored = run(store.get_all())
        assert len(stored) == 1
        assert stored[0] == invoice

    def test_add_existing_id_fails(self, store, run, invoice_factory):
        run(store.add(invoice_factory(id="a", number="F-1")))
        with pytest.raises(DuplicateError):
            run(store.add(invoice_factory(id="a", number="F-2")))
        assert [inv.number for inv in run(store.get_all())] == ["F-1"]

    def test_put_replaces_by_id(self, store, run, invoice_factory):
        run(store.add(invoice_factory(id="a", concept="Draft")))
        run(store.put(invoice_factory(id="a", concept="First edit")))
        run(store.put(invoice_factory(id="a", concept="Final", archived=True)))

        stored = run(store.get_all())
        assert len(stored) == 1
        assert stored[0].id == "a"
        assert stored[0].concept == "Final"
        assert stored[0].archived is True

    def test_put_inserts_unknown_id(self, store, run, invoice_factory):
        run(store.put(invoice_factory(id="new")))
        assert [inv.id for inv in run(store.get_all())] == ["new"]

    def test_delete(self, store, run, invoice_factory):
        run(store.add(invoice_factory(id="a", number="F-1")))
        run(store.add(invoice_factory(id="b", number="F-2")))
        run(store.delete("a"))
        assert [inv.id for inv in run(store.get_all())] == ["b"]

    def test_delete_missing_id_is_noop(self, store, run, invoice_factory):
        run(store.add(invoice_factory(id="a")))
        run(store.delete("does-not-exist"))
        assert len(run(store.get_all())) == 1

    def test_clear_and_import_replaces_everything(self, store, run, invoice_factory):
        run(store.add(invoice_factory(id="old", number="OLD-1")))
        batch = [
            invoice_factory(id="x", number="N-1"),
            invoice_factory(id="y", number="N-2", type="received"),
        ]
        run(store.clear_and_import(batch))

        stored = sorted(run(store.get_all()), key=lambda inv: inv.id)
        assert [inv.id for inv in stored] == ["x", "y"]
        assert stored[1].type.value == "received"

    def test_clear_and_import_empty_batch(self, store, run, invoice_factory):
        run(store.add(invoice_factory(id="a")))
        run(store.clear_and_import([]))
        assert run(store.get_all()) == []

    def test_import_with_repeated_id_leaves_store_untouched(self, store, run, invoice_factory):
        run(store.add(invoice_factory(id="keep", number="K-1")))
        batch = [
            invoice_factory(id="x", number="N-1"),
            invoice_factory(id="x", number="N-2"),
        ]
        with pytest.raises(DuplicateError):
            run(store.clear_and_import(batch))
        assert [inv.id for inv in run(store.get_all())] == ["keep"]


class TestSqliteStore:
    """Indexed backend specifics."""

    def test_number_is_unique_on_add(self, tmp_path, run, invoice_factory):
        store = SqliteInvoiceStore(tmp_path / "invoices.db")
        run(store.open())
        try:
            run(store.add(invoice_factory(id="a", number="F-1")))
            with pytest.raises(DuplicateError):
                run(store.add(invoice_factory(id="b", number="F-1")))
        finally:
            run(store.close())

    def test_number_is_unique_on_put(self, tmp_path, run, invoice_factory):
        store = SqliteInvoiceStore(tmp_path / "invoices.db")
        run(store.open())
        try:
            run(store.add(invoice_factory(id="a", number="F-1")))
            run(store.add(invoice_factory(id="b", number="F-2")))
            with pytest.raises(DuplicateError):
                run(store.put(invoice_factory(id="b", number="F-1")))
            numbers = {inv.id: inv.number for inv in run(store.get_all())}
            assert numbers == {"a": "F-1", "b": "F-2"}
        finally:
            run(store.close())

    def test_failed_import_rolls_back(self, tmp_path, run, invoice_factory):
        """A duplicate number mid-batch keeps the previous collection."""
        store = SqliteInvoiceStore(tmp_path / "invoices.db")
        run(store.open())
        try:
            run(store.add(invoice_factory(id="keep", number="K-1")))
            batch = [
                invoice_factory(id="x", number="N-1"),
                invoice_factory(id="y", number="N-2"),
                invoice_factory(id="z", number="N-1"),
            ]
            with pytest.raises(DuplicateError):
                run(store.clear_and_import(batch))
            assert [inv.id for inv in run(store.get_all())] == ["keep"]
        finally:
            run(store.close())

    def test_data_survives_reopen(self, tmp_path, run, invoice_factory):
        path = tmp_path / "invoices.db"
        store = SqliteInvoiceStore(path)
        run(store.open())
        run(store.add(invoice_factory(id="a", base=12.5, tax_pct=4)))
        run(store.close())

        reopened = SqliteInvoiceStore(path)
        run(reopened.open())
        try:
            stored = run(reopened.get_all())
            assert stored[0].base == 12.5
            assert stored[0].tax_pct == 4.0
        finally:
            run(reopened.close())

    def test_schema_version_is_recorded(self, tmp_path, run):
        path = tmp_path / "invoices.db"
        store = SqliteInvoiceStore(path)
        run(store.open())
        run(store.close())

        conn = sqlite3.connect(path)
        try:
            assert conn.execute("PRAGMA user_version").fetchone()[0] == 1
            indexes = {row[1] for row in conn.execute("PRAGMA index_list('invoices')")}
        finally:
            conn.close()
        assert "ix_invoices_number" in indexes
        assert "ix_invoices_date" in indexes

    def test_not_a_database_fails_to_open(self, tmp_path, run):
        path = tmp_path / "invoices.db"
        path.write_bytes(b"definitely not sqlite " * 20)
        store = SqliteInvoiceStore(path)
        with pytest.raises(BackendUnavailableError):
            run(store.open())

    def test_newer_schema_fails_to_open(self, tmp_path, run):
        path = tmp_path / "invoices.db"
        conn = sqlite3.connect(path)
        conn.execute("PRAGMA user_version = 7")
        conn.close()
        with pytest.raises(BackendUnavailableError, match="newer"):
            run(SqliteInvoiceStore(path).open())

    def test_write_waits_out_a_short_lock(self, tmp_path, run, invoice_factory):
        """A lock released between attempts does not surface as an error."""
        path = tmp_path / "invoices.db"
        store = SqliteInvoiceStore(path, busy_timeout=0.05)
        run(store.open())
        holder = _hold_exclusive_lock(path)
        release = threading.Timer(0.12, holder.execute, args=("COMMIT",))
        try:
            release.start()
            assert run(store.add(invoice_factory(id="a"))) == "a"
            assert [inv.id for inv in run(store.get_all())] == ["a"]
        finally:
            release.join()
            holder.close()
            run(store.close())

    def test_lock_that_outlasts_retries(self, tmp_path, run, invoice_factory):
        path = tmp_path / "invoices.db"
        store = SqliteInvoiceStore(path, busy_timeout=0.05)
        run(store.open())
        holder = _hold_exclusive_lock(path)
        try:
            with pytest.raises(StorageError, match="locked") as exc_info:
                run(store.add(invoice_factory(id="a")))
            assert not isinstance(exc_info.value, DuplicateError)
        finally:
            holder.execute("ROLLBACK")
            holder.close()
        try:
            assert run(store.get_all()) == []
        finally:
            run(store.close())

    def test_use_before_open(self, tmp_path, run):
        with pytest.raises(StorageError):
            run(SqliteInvoiceStore(tmp_path / "invoices.db").get_all())


class TestFlatFileStore:
    """Flat backend specifics."""

    def test_missing_file_is_empty(self, tmp_path, run):
        store = FlatFileInvoiceStore(tmp_path / "missing" / "invoices.json")
        assert run(store.get_all()) == []

    def test_collection_stored_under_fixed_key(self, tmp_path, run, invoice_factory):
        path = tmp_path / "invoices.json"
        run(FlatFileInvoiceStore(path).add(invoice_factory(id="a", tax_pct=10)))

        document = json.loads(path.read_text(encoding="utf-8"))
        assert list(document) == [COLLECTION_KEY]
        assert document[COLLECTION_KEY][0]["id"] == "a"
        assert document[COLLECTION_KEY][0]["taxPct"] == 10.0

    def test_other_keys_are_preserved(self, tmp_path, run, invoice_factory):
        path = tmp_path / "invoices.json"
        KeyValueFile(path).set("theme", "dark")
        run(FlatFileInvoiceStore(path).add(invoice_factory(id="a")))
        assert KeyValueFile(path).get("theme") == "dark"

    def test_no_number_index(self, tmp_path, run, invoice_factory):
        """The flat backend leaves number checks to the validator."""
        store = FlatFileInvoiceStore(tmp_path / "invoices.json")
        run(store.add(invoice_factory(id="a", number="F-1")))
        run(store.add(invoice_factory(id="b", number="F-1")))
        assert len(run(store.get_all())) == 2

    def test_import_with_repeated_number_is_accepted(self, tmp_path, run, invoice_factory):
        """Only ids are checked in a flat batch; numbers are left to the validator."""
        store = FlatFileInvoiceStore(tmp_path / "invoices.json")
        batch = [
            invoice_factory(id="x", number=""),
            invoice_factory(id="y", number=""),
        ]
        run(store.clear_and_import(batch))
        assert len(run(store.get_all())) == 2

    def test_corrupt_file_raises_storage_error(self, tmp_path, run):
        path = tmp_path / "invoices.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            run(FlatFileInvoiceStore(path).get_all())

    def test_collection_must_be_a_list(self, tmp_path, run):
        path = tmp_path / "invoices.json"
        path.write_text(json.dumps({COLLECTION_KEY: {"a": 1}}), encoding="utf-8")
        with pytest.raises(StorageError):
            run(FlatFileInvoiceStore(path).get_all())

    def test_no_temporary_file_left(self, tmp_path, run, invoice_factory):
        run(FlatFileInvoiceStore(tmp_path / "invoices.json").add(invoice_factory()))
        assert [p.name for p in tmp_path.iterdir()] == ["invoices.json"]


class TestBackendSelection:
    """Tests for open_invoice_store fallback."""

    def test_prefers_indexed_backend(self, tmp_path, run):
        store = run(open_invoice_store(StorageSettings(data_dir=tmp_path)))
        try:
            assert isinstance(store, SqliteInvoiceStore)
            assert store.backend_name == "indexed"
        finally:
            run(store.close())

    def test_disabled_indexed_backend(self, tmp_path, run):
        settings = StorageSettings(data_dir=tmp_path, indexed_backend_enabled=False)
        store = run(open_invoice_store(settings))
        assert isinstance(store, FlatFileInvoiceStore)
        assert store.path == tmp_path / "invoices.json"

    def test_falls_back_when_database_cannot_open(self, tmp_path, run, invoice_factory):
        (tmp_path / "invoices.db").write_bytes(b"corrupted " * 50)
        store = run(open_invoice_store(StorageSettings(data_dir=tmp_path)))
        assert isinstance(store, FlatFileInvoiceStore)

        run(store.add(invoice_factory(id="a")))
        assert [inv.id for inv in run(store.get_all())] == ["a"]
