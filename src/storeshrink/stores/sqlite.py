"""
SQLite key-value store implementation.

Ordered key-value store backed by a single SQLite database file, with
async support via aiosqlite.

A store is a directory holding ``store.sqlite3``. Entries live in a
``WITHOUT ROWID`` table keyed by a BLOB primary key, so the table itself
is the ordered index and iteration follows bytewise key order.

Databases created by this module use ``auto_vacuum = FULL`` and the
rollback journal, so pages freed by deletes are handed back to the
filesystem when each batch commits and the directory shrinks as entries
are relocated away. Existing databases in WAL mode are switched to the
rollback journal when opened read-write.
"""

from __future__ import annotations

import itertools
import logging
import os
from collections.abc import AsyncIterator
from pathlib import Path

import aiosqlite

from storeshrink.exceptions import CommitError, IterationError, OpenError
from storeshrink.observability import (
    ATTR_DB_NAME,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_OPERATION_COUNT,
    ATTR_STORE_PATH,
    ATTR_SYNC,
    Tracer,
    create_tracer,
)
from storeshrink.stores.interface import (
    Entry,
    KeyValueStore,
    OperationType,
    WriteBatch,
    WriteOptions,
)

logger = logging.getLogger(__name__)

DATABASE_FILENAME = "store.sqlite3"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS entries (
    key BLOB PRIMARY KEY,
    value BLOB NOT NULL
) WITHOUT ROWID
"""

_UPSERT = (
    "INSERT INTO entries (key, value) VALUES (?, ?) "
    "ON CONFLICT(key) DO UPDATE SET value = excluded.value"
)
_DELETE = "DELETE FROM entries WHERE key = ?"

# PRAGMA auto_vacuum values
_AUTO_VACUUM_NONE = 0


class SQLiteKeyValueStore(KeyValueStore):
    """
    SQLite implementation of the key-value store.

    Uses aiosqlite for async database operations. The connection runs in
    autocommit mode and every batch is wrapped in an explicit
    ``BEGIN IMMEDIATE`` / ``COMMIT``, with ``ROLLBACK`` on failure, so a
    batch is applied completely or not at all.

    Iteration uses keyset pagination (``key > ? ORDER BY key LIMIT ?``):
    no read statement stays open between pages, so batches can be
    committed to the same store while a scan is in progress.

    Attributes:
        _path: Store root directory
        _database: Path of the SQLite database file inside the root
        _create_if_missing: Create the directory and database when absent
        _read_only: Open the database read-only
        _busy_timeout: Timeout in ms for busy database
        _fetch_size: Rows read per page while iterating
        _connection: The aiosqlite connection (set after open)

    Example:
        >>> async with SQLiteKeyValueStore("/data/source") as store:
        ...     batch = WriteBatch()
        ...     batch.put(b"k", b"v")
        ...     await store.commit(batch, WriteOptions(sync=True))
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        create_if_missing: bool = True,
        read_only: bool = False,
        busy_timeout: int = 5000,
        fetch_size: int = 512,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the SQLite store.

        Args:
            path: Root directory of the store
            create_if_missing: Create the directory and database if they do
                not exist (default: True). Ignored when read_only is set.
            read_only: Open the database in read-only mode (default: False)
            busy_timeout: Timeout in milliseconds when database is locked (default: 5000)
            fetch_size: Rows fetched per page while iterating (default: 512)
            tracer: Optional custom Tracer instance. If not provided, one is
                   created based on enable_tracing setting.
            enable_tracing: If True and OpenTelemetry is available, emit traces (default: True).
                          Ignored if tracer is explicitly provided.
        """
        if fetch_size < 1:
            raise ValueError(f"fetch_size must be >= 1, got {fetch_size}")
        self._path = os.fspath(path)
        self._database = os.path.join(self._path, DATABASE_FILENAME)
        self._create_if_missing = create_if_missing and not read_only
        self._read_only = read_only
        self._busy_timeout = busy_timeout
        self._fetch_size = fetch_size
        self._connection: aiosqlite.Connection | None = None

        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def path(self) -> str:
        return self._path

    @property
    def database(self) -> str:
        """Path of the SQLite database file."""
        return self._database

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    async def open(self) -> None:
        """
        Open the database connection and prepare the schema.

        Raises:
            OpenError: If the directory or database is missing and may not be
                created, or SQLite refuses to open it
        """
        if self._connection is not None:
            return

        root = Path(self._path)
        if root.exists() and not root.is_dir():
            raise OpenError(self._path, "store path is not a directory")

        is_new = not os.path.exists(self._database)
        if is_new and not self._create_if_missing:
            raise OpenError(self._path, f"{DATABASE_FILENAME} does not exist")

        try:
            if is_new:
                root.mkdir(parents=True, exist_ok=True)
            if self._read_only:
                uri = f"{root.resolve().as_uri()}/{DATABASE_FILENAME}?mode=ro"
                self._connection = await aiosqlite.connect(uri, uri=True, isolation_level=None)
            else:
                self._connection = await aiosqlite.connect(self._database, isolation_level=None)
            await self._configure(is_new)
        except (aiosqlite.Error, OSError) as e:
            await self.close()
            raise OpenError(self._path, str(e)) from e

        logger.debug(
            "Opened SQLite store: %s (new=%s, read_only=%s)",
            self._path,
            is_new,
            self._read_only,
        )

    async def _configure(self, is_new: bool) -> None:
        conn = self._ensure_connected()
        await conn.execute(f"PRAGMA busy_timeout = {self._busy_timeout}")

        if self._read_only:
            return

        if is_new:
            # auto_vacuum only takes effect if set before the first table exists
            await conn.execute("PRAGMA auto_vacuum = FULL")
            await conn.execute("PRAGMA journal_mode = DELETE")
        else:
            await self._leave_wal_mode(conn)
        await conn.execute(_SCHEMA)

        async with conn.execute("PRAGMA auto_vacuum") as cursor:
            row = await cursor.fetchone()
        if row is not None and row[0] == _AUTO_VACUUM_NONE:
            logger.warning(
                "SQLite store %s was created without auto_vacuum; deleted entries "
                "will not shrink it until it is vacuumed",
                self._path,
            )

    async def _leave_wal_mode(self, conn: aiosqlite.Connection) -> None:
        """
        Move an existing WAL database to the rollback journal.

        In WAL mode deletes accumulate in ``store.sqlite3-wal`` until a
        checkpoint, so the directory grows while entries are relocated away.
        The switch fails if another connection holds the database open, in
        which case the store stays in WAL mode and a warning is logged.
        """
        async with conn.execute("PRAGMA journal_mode") as cursor:
            row = await cursor.fetchone()
        if row is None or str(row[0]).lower() != "wal":
            return

        try:
            async with conn.execute("PRAGMA journal_mode = DELETE") as cursor:
                row = await cursor.fetchone()
        except aiosqlite.OperationalError as e:
            logger.debug("Could not leave WAL mode for %s: %s", self._path, e)
            row = None

        if row is not None and str(row[0]).lower() == "delete":
            logger.info("Switched SQLite store %s from WAL to the rollback journal", self._path)
        else:
            logger.warning(
                "SQLite store %s uses WAL journaling; deleted entries stay in %s-wal "
                "until a checkpoint, so its size may grow between rounds",
                self._path,
                DATABASE_FILENAME,
            )

    async def close(self) -> None:
        """
        Close the database connection.

        Safe to call multiple times.
        """
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.debug("Closed SQLite store: %s", self._path)

    def _ensure_connected(self) -> aiosqlite.Connection:
        """
        Ensure we have an active connection.

        Raises:
            RuntimeError: If not connected
        """
        if self._connection is None:
            raise RuntimeError(
                "Store is not open. Use 'async with store:' or call 'open()' first."
            )
        return self._connection

    async def iterate(self) -> AsyncIterator[Entry]:
        conn = self._ensure_connected()
        last_key: bytes | None = None

        while True:
            try:
                if last_key is None:
                    query = "SELECT key, value FROM entries ORDER BY key LIMIT ?"
                    params: tuple[object, ...] = (self._fetch_size,)
                else:
                    query = "SELECT key, value FROM entries WHERE key > ? ORDER BY key LIMIT ?"
                    params = (last_key, self._fetch_size)
                async with conn.execute(query, params) as cursor:
                    rows = await cursor.fetchall()
            except aiosqlite.Error as e:
                raise IterationError(self._path, str(e)) from e

            if not rows:
                return
            for key, value in rows:
                yield Entry(bytes(key), bytes(value))
            last_key = bytes(rows[-1][0])

    async def commit(self, batch: WriteBatch, options: WriteOptions | None = None) -> None:
        if batch.is_empty:
            return
        options = options or WriteOptions()

        with self._tracer.span(
            "storeshrink.sqlite_store.commit",
            {
                ATTR_STORE_PATH: self._path,
                ATTR_OPERATION_COUNT: len(batch),
                ATTR_SYNC: options.sync,
                ATTR_DB_SYSTEM: "sqlite",
                ATTR_DB_NAME: DATABASE_FILENAME,
                ATTR_DB_OPERATION: "COMMIT",
            },
        ):
            await self._do_commit(batch, options)

    async def _do_commit(self, batch: WriteBatch, options: WriteOptions) -> None:
        """Internal implementation of commit."""
        conn = self._ensure_connected()

        try:
            await conn.execute(f"PRAGMA synchronous = {'FULL' if options.sync else 'NORMAL'}")
            await conn.execute("BEGIN IMMEDIATE")
            try:
                # consecutive runs of the same kind go through executemany
                for op_type, group in itertools.groupby(batch, key=lambda op: op.type):
                    if op_type is OperationType.PUT:
                        await conn.executemany(_UPSERT, [(op.key, op.value) for op in group])
                    else:
                        await conn.executemany(_DELETE, [(op.key,) for op in group])
                await conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    await conn.execute("ROLLBACK")
                raise
        except (aiosqlite.Error, OSError) as e:
            raise CommitError(self._path, str(e), operation_count=len(batch)) from e

        logger.debug(
            "Committed batch of %d operations to %s (sync=%s)",
            len(batch),
            self._path,
            options.sync,
        )

    async def get(self, key: bytes) -> bytes | None:
        conn = self._ensure_connected()
        async with conn.execute("SELECT value FROM entries WHERE key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
        return None if row is None else bytes(row[0])

    async def count(self) -> int:
        conn = self._ensure_connected()
        async with conn.execute("SELECT COUNT(*) FROM entries") as cursor:
            row = await cursor.fetchone()
        return int(row[0]) if row is not None else 0
