"""
In-memory key-value store implementation.

Useful for testing and dry runs. Not suitable for production
as all entries are lost when the process terminates.
"""

import asyncio
import bisect
from collections.abc import AsyncIterator

from storeshrink.observability import (
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


class InMemoryKeyValueStore(KeyValueStore):
    """
    In-memory implementation of the key-value store.

    Keeps keys in a sorted list next to a dictionary of values, so
    iteration follows bytewise key order like the on-disk stores.
    Suitable for:

    - Unit testing
    - Dry runs of a relocation plan

    Thread-safety:
        Uses an asyncio lock around every read and write. Safe for
        concurrent async operations within a single process.

    Example:
        >>> store = InMemoryKeyValueStore()
        >>> async with store:
        ...     batch = WriteBatch()
        ...     batch.put(b"a", b"1")
        ...     await store.commit(batch)

    Attributes:
        _keys: Sorted list of keys
        _values: Dictionary mapping key to value
        _fetch_size: Number of entries copied out of the lock per page
    """

    def __init__(
        self,
        path: str = ":memory:",
        *,
        fetch_size: int = 256,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize an empty in-memory store.

        Args:
            path: Label used in logs, spans and errors (default ':memory:')
            fetch_size: Entries read per page while iterating
            tracer: Optional custom Tracer instance. If not provided, one is
                   created based on enable_tracing setting.
            enable_tracing: If True and OpenTelemetry is available, emit traces (default: True).
                          Ignored if tracer is explicitly provided.
        """
        if fetch_size < 1:
            raise ValueError(f"fetch_size must be >= 1, got {fetch_size}")
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

        self._path = path
        self._fetch_size = fetch_size
        self._keys: list[bytes] = []
        self._values: dict[bytes, bytes] = {}
        self._open = False
        self._lock: asyncio.Lock = asyncio.Lock()

    @property
    def path(self) -> str:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self) -> None:
        self._open = True

    async def close(self) -> None:
        self._open = False

    def _ensure_open(self) -> None:
        if not self._open:
            raise RuntimeError(
                "Store is not open. Use 'async with store:' or call 'open()' first."
            )

    async def iterate(self) -> AsyncIterator[Entry]:
        self._ensure_open()
        last_key: bytes | None = None
        while True:
            async with self._lock:
                start = 0 if last_key is None else bisect.bisect_right(self._keys, last_key)
                page = [
                    Entry(key, self._values[key])
                    for key in self._keys[start : start + self._fetch_size]
                ]
            if not page:
                return
            for entry in page:
                yield entry
            last_key = page[-1].key

    async def commit(self, batch: WriteBatch, options: WriteOptions | None = None) -> None:
        self._ensure_open()
        if batch.is_empty:
            return
        options = options or WriteOptions()

        with self._tracer.span(
            "storeshrink.in_memory_store.commit",
            {
                ATTR_STORE_PATH: self._path,
                ATTR_OPERATION_COUNT: len(batch),
                ATTR_SYNC: options.sync,
                ATTR_DB_SYSTEM: "memory",
            },
        ):
            async with self._lock:
                for op in batch:
                    if op.type is OperationType.PUT:
                        assert op.value is not None
                        if op.key not in self._values:
                            bisect.insort(self._keys, op.key)
                        self._values[op.key] = op.value
                    elif op.key in self._values:
                        del self._values[op.key]
                        del self._keys[bisect.bisect_left(self._keys, op.key)]

    async def get(self, key: bytes) -> bytes | None:
        self._ensure_open()
        async with self._lock:
            return self._values.get(key)

    async def count(self) -> int:
        self._ensure_open()
        async with self._lock:
            return len(self._keys)

    # =========================================================================
    # Test helpers
    # =========================================================================

    def keys(self) -> list[bytes]:
        """Snapshot of all keys in order."""
        return list(self._keys)

    def total_bytes(self) -> int:
        """Sum of key and value lengths of every entry."""
        return sum(len(key) + len(value) for key, value in self._values.items())
