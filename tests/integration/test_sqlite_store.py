"""
Integration tests for SQLiteKeyValueStore.

Tests cover:
- Opening, creating and refusing to create stores
- Existing WAL databases
- Bytewise key ordering and paginated scans
- Atomic batches (all operations or none)
- Read-only stores
- Files shrinking on disk as entries are deleted
"""

from __future__ import annotations

import contextlib
import logging
import sqlite3

import aiosqlite
import pytest

from storeshrink.exceptions import CommitError, OpenError
from storeshrink.observability import MockTracer
from storeshrink.probe import measure_size
from storeshrink.stores.interface import WriteBatch, WriteOptions
from storeshrink.stores.sqlite import DATABASE_FILENAME, SQLiteKeyValueStore
from tests.fixtures import make_entries, make_key

pytestmark = pytest.mark.sqlite


def batch_of(entries) -> WriteBatch:
    batch = WriteBatch()
    for entry in entries:
        batch.put(entry.key, entry.value)
    return batch


class TestSQLiteStoreOpen:
    """Tests for open()."""

    @pytest.mark.asyncio
    async def test_creates_directory_and_database(self, tmp_path):
        root = tmp_path / "nested" / "store"

        async with SQLiteKeyValueStore(root, enable_tracing=False) as store:
            assert store.is_open
            assert store.path == str(root)
            assert await store.count() == 0

        assert (root / DATABASE_FILENAME).is_file()
        assert not store.is_open

    @pytest.mark.asyncio
    async def test_new_database_uses_full_auto_vacuum(self, tmp_path):
        async with SQLiteKeyValueStore(tmp_path / "s", enable_tracing=False) as store:
            database = store.database

        with contextlib.closing(sqlite3.connect(database)) as conn:
            assert conn.execute("PRAGMA auto_vacuum").fetchone()[0] == 1

    @pytest.mark.asyncio
    async def test_refuses_to_create_when_not_allowed(self, tmp_path):
        root = tmp_path / "missing"
        store = SQLiteKeyValueStore(root, create_if_missing=False, enable_tracing=False)

        with pytest.raises(OpenError, match="does not exist"):
            await store.open()

        assert not store.is_open
        assert not root.exists()

    @pytest.mark.asyncio
    async def test_file_in_place_of_directory(self, tmp_path):
        root = tmp_path / "file"
        root.write_bytes(b"not a store")

        with pytest.raises(OpenError, match="not a directory"):
            await SQLiteKeyValueStore(root, enable_tracing=False).open()

    @pytest.mark.asyncio
    async def test_corrupt_database(self, tmp_path):
        root = tmp_path / "corrupt"
        root.mkdir()
        (root / DATABASE_FILENAME).write_bytes(b"garbage" * 1000)
        store = SQLiteKeyValueStore(root, enable_tracing=False)

        with pytest.raises(OpenError) as exc_info:
            await store.open()

        assert exc_info.value.path == str(root)
        assert not store.is_open

    @pytest.mark.asyncio
    async def test_reopen_keeps_entries(self, tmp_path):
        root = tmp_path / "s"
        async with SQLiteKeyValueStore(root, enable_tracing=False) as store:
            await store.commit(batch_of(make_entries(3)))

        async with SQLiteKeyValueStore(
            root, create_if_missing=False, enable_tracing=False
        ) as store:
            assert await store.count() == 3

    @pytest.mark.asyncio
    async def test_existing_database_without_auto_vacuum_warns(self, tmp_path, caplog):
        root = tmp_path / "legacy"
        root.mkdir()
        with contextlib.closing(sqlite3.connect(root / DATABASE_FILENAME)) as conn:
            conn.execute("CREATE TABLE unrelated (x)")
            conn.commit()

        with caplog.at_level(logging.WARNING, logger="storeshrink.stores.sqlite"):
            async with SQLiteKeyValueStore(root, enable_tracing=False):
                pass

        assert "without auto_vacuum" in caplog.text

    @pytest.mark.asyncio
    async def test_existing_wal_database_moves_to_rollback_journal(self, tmp_path, caplog):
        root = tmp_path / "wal"
        root.mkdir()
        with contextlib.closing(sqlite3.connect(root / DATABASE_FILENAME)) as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("CREATE TABLE unrelated (x)")
            conn.commit()

        with caplog.at_level(logging.INFO, logger="storeshrink.stores.sqlite"):
            async with SQLiteKeyValueStore(root, enable_tracing=False) as store:
                await store.commit(batch_of(make_entries(3)))

        assert "from WAL to the rollback journal" in caplog.text
        assert not (root / f"{DATABASE_FILENAME}-wal").exists()
        with contextlib.closing(sqlite3.connect(root / DATABASE_FILENAME)) as conn:
            assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "delete"

    @pytest.mark.asyncio
    async def test_wal_database_in_use_elsewhere_warns(self, tmp_path, caplog):
        root = tmp_path / "busy"
        root.mkdir()
        reader = sqlite3.connect(root / DATABASE_FILENAME, isolation_level=None)
        try:
            reader.execute("PRAGMA journal_mode = WAL")
            reader.execute("CREATE TABLE unrelated (x)")
            # an open read transaction keeps the database in WAL mode
            reader.execute("BEGIN")
            reader.execute("SELECT COUNT(*) FROM unrelated").fetchone()

            with caplog.at_level(logging.WARNING, logger="storeshrink.stores.sqlite"):
                async with SQLiteKeyValueStore(root, busy_timeout=0, enable_tracing=False):
                    pass
        finally:
            reader.close()

        assert "uses WAL journaling" in caplog.text

    @pytest.mark.asyncio
    async def test_operations_require_open_store(self, tmp_path):
        store = SQLiteKeyValueStore(tmp_path / "s", enable_tracing=False)
        with pytest.raises(RuntimeError, match="not open"):
            await store.count()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, sqlite_store):
        await sqlite_store.close()
        await sqlite_store.close()
        assert not sqlite_store.is_open


class TestSQLiteStoreIteration:
    """Tests for iterate()."""

    @pytest.mark.asyncio
    async def test_iterates_in_bytewise_key_order(self, sqlite_store):
        batch = WriteBatch()
        for key in (b"b", b"\xff", b"a", b"\x00\x01", b"ab", b"\x00"):
            batch.put(key, key * 2)
        await sqlite_store.commit(batch)

        entries = [entry async for entry in sqlite_store.iterate()]

        assert [entry.key for entry in entries] == [
            b"\x00",
            b"\x00\x01",
            b"a",
            b"ab",
            b"b",
            b"\xff",
        ]
        assert all(entry.value == entry.key * 2 for entry in entries)

    @pytest.mark.asyncio
    async def test_scan_spans_several_pages(self, tmp_path):
        store = SQLiteKeyValueStore(tmp_path / "s", fetch_size=4, enable_tracing=False)
        async with store:
            await store.commit(batch_of(reversed(make_entries(11))))

            keys = [entry.key async for entry in store.iterate()]

        assert keys == [make_key(i) for i in range(11)]

    @pytest.mark.asyncio
    async def test_commits_during_scan(self, tmp_path):
        store = SQLiteKeyValueStore(tmp_path / "s", fetch_size=3, enable_tracing=False)
        async with store:
            await store.commit(batch_of(make_entries(10)))

            seen = []
            async for entry in store.iterate():
                seen.append(entry.key)
                batch = WriteBatch()
                batch.delete(entry.key)
                await store.commit(batch)

            assert seen == [make_key(i) for i in range(10)]
            assert await store.count() == 0


class TestSQLiteStoreCommit:
    """Tests for commit()."""

    @pytest.mark.asyncio
    async def test_put_overwrite_and_delete(self, sqlite_store):
        batch = WriteBatch()
        batch.put(b"a", b"1")
        batch.put(b"b", b"2")
        await sqlite_store.commit(batch, WriteOptions(sync=True))

        batch = WriteBatch()
        batch.put(b"a", b"one")
        batch.delete(b"b")
        batch.delete(b"never-there")
        await sqlite_store.commit(batch)

        assert await sqlite_store.get(b"a") == b"one"
        assert await sqlite_store.get(b"b") is None
        assert await sqlite_store.count() == 1

    @pytest.mark.asyncio
    async def test_operations_apply_in_order(self, sqlite_store):
        batch = WriteBatch()
        batch.put(b"k", b"1")
        batch.delete(b"k")
        batch.put(b"k", b"2")
        batch.put(b"j", b"1")
        batch.delete(b"j")
        await sqlite_store.commit(batch)

        assert await sqlite_store.get(b"k") == b"2"
        assert await sqlite_store.get(b"j") is None

    @pytest.mark.asyncio
    async def test_empty_batch_is_a_no_op(self, sqlite_store):
        await sqlite_store.commit(WriteBatch())
        assert await sqlite_store.count() == 0

    @pytest.mark.asyncio
    async def test_failed_batch_is_rolled_back(self, sqlite_store):
        await sqlite_store.commit(batch_of(make_entries(2)))
        # reject one specific key so the batch fails part-way through
        async with aiosqlite.connect(sqlite_store.database) as conn:
            await conn.execute(
                "CREATE TRIGGER reject_bad BEFORE INSERT ON entries "
                "WHEN NEW.key = x'626164' BEGIN SELECT RAISE(ABORT, 'rejected key'); END"
            )
            await conn.commit()

        batch = WriteBatch()
        batch.delete(make_key(0))
        batch.put(b"good", b"1")
        batch.put(b"bad", b"2")
        batch.put(b"late", b"3")

        with pytest.raises(CommitError) as exc_info:
            await sqlite_store.commit(batch)

        assert "rejected key" in str(exc_info.value)
        assert exc_info.value.operation_count == 4
        assert exc_info.value.path == sqlite_store.path
        assert [entry.key async for entry in sqlite_store.iterate()] == [
            make_key(0),
            make_key(1),
        ]

        # the store stays usable after a rollback
        retry = WriteBatch()
        retry.put(b"good", b"1")
        await sqlite_store.commit(retry)
        assert await sqlite_store.get(b"good") == b"1"

    @pytest.mark.asyncio
    async def test_read_only_store_rejects_commits(self, tmp_path):
        root = tmp_path / "s"
        async with SQLiteKeyValueStore(root, enable_tracing=False) as store:
            await store.commit(batch_of(make_entries(3)))

        async with SQLiteKeyValueStore(root, read_only=True, enable_tracing=False) as store:
            assert await store.count() == 3
            batch = WriteBatch()
            batch.delete(make_key(0))

            with pytest.raises(CommitError):
                await store.commit(batch)

            assert await store.count() == 3

    @pytest.mark.asyncio
    async def test_read_only_never_creates(self, tmp_path):
        with pytest.raises(OpenError):
            await SQLiteKeyValueStore(
                tmp_path / "missing", read_only=True, enable_tracing=False
            ).open()

        assert not (tmp_path / "missing").exists()

    @pytest.mark.asyncio
    async def test_commit_creates_span(self, tmp_path):
        tracer = MockTracer()
        async with SQLiteKeyValueStore(tmp_path / "s", tracer=tracer) as store:
            await store.commit(batch_of(make_entries(2)), WriteOptions(sync=True))

        assert tracer.span_names == ["storeshrink.sqlite_store.commit"]
        _, attributes = tracer.spans[0]
        assert attributes["db.system"] == "sqlite"
        assert attributes["storeshrink.batch.operation_count"] == 2
        assert attributes["storeshrink.batch.sync"] is True


class TestSQLiteStoreSize:
    """Tests for on-disk size as entries come and go."""

    @pytest.mark.asyncio
    async def test_deleting_entries_shrinks_the_directory(self, tmp_path):
        root = tmp_path / "s"
        entries = make_entries(2000, value_size=200)
        async with SQLiteKeyValueStore(root, enable_tracing=False) as store:
            await store.commit(batch_of(entries), WriteOptions(sync=True))
            full = measure_size(root)

            batch = WriteBatch()
            for entry in entries[:1500]:
                batch.delete(entry.key)
            await store.commit(batch, WriteOptions(sync=True))
            reduced = measure_size(root)

        assert full > 400_000
        assert reduced < full // 2
