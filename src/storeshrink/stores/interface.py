"""
Key-value store interface and core data structures.

A store is an ordered, durable key-value container exposing forward
iteration and atomic batched writes. Two independent stores take part in
every relocation run: the source being shrunk and the target receiving
the relocated entries.

This module provides:
- Entry: A key/value pair read from a store
- OperationType / Operation: A single put or delete
- WriteBatch: An ordered list of operations committed atomically
- WriteOptions: Durability options for a commit
- KeyValueStore: Abstract base class for store implementations
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Entry:
    """
    A key/value pair stored in a key-value store.

    Both key and value are opaque byte strings; no schema is imposed.

    Attributes:
        key: Unique key within the store
        value: Stored value
    """

    key: bytes
    value: bytes

    @property
    def size(self) -> int:
        """Logical size of the entry in bytes (key plus value)."""
        return len(self.key) + len(self.value)


class OperationType(Enum):
    """Kind of a write batch operation."""

    PUT = "put"
    DELETE = "delete"


@dataclass(frozen=True)
class Operation:
    """
    A single operation inside a write batch.

    Attributes:
        type: PUT (insert or overwrite) or DELETE
        key: Key the operation applies to
        value: Value to store (None for DELETE)
    """

    type: OperationType
    key: bytes
    value: bytes | None = None


def _ensure_bytes(name: str, data: Any) -> bytes:
    if not isinstance(data, bytes | bytearray | memoryview):
        raise TypeError(f"{name} must be bytes, got {type(data).__name__}")
    return bytes(data)


class WriteBatch:
    """
    Ordered sequence of put/delete operations scoped to one store.

    A batch is applied by ``KeyValueStore.commit`` as a single atomic unit:
    either every operation becomes visible or none does. Operations are
    applied in the order they were added, so a later operation on the same
    key wins.

    Example:
        >>> batch = WriteBatch()
        >>> batch.put(b"user:1", b"alice")
        >>> batch.delete(b"user:2")
        >>> len(batch)
        2
    """

    def __init__(self) -> None:
        self._operations: list[Operation] = []

    def put(self, key: bytes, value: bytes) -> None:
        """Append an upsert of ``key`` to ``value``."""
        self._operations.append(
            Operation(OperationType.PUT, _ensure_bytes("key", key), _ensure_bytes("value", value))
        )

    def delete(self, key: bytes) -> None:
        """Append a removal of ``key``."""
        self._operations.append(Operation(OperationType.DELETE, _ensure_bytes("key", key)))

    def clear(self) -> None:
        """Drop all staged operations."""
        self._operations.clear()

    @property
    def operations(self) -> list[Operation]:
        """Staged operations in application order (a copy)."""
        return list(self._operations)

    @property
    def is_empty(self) -> bool:
        """True if no operation has been staged."""
        return not self._operations

    def __len__(self) -> int:
        return len(self._operations)

    def __iter__(self) -> Iterator[Operation]:
        return iter(self._operations)

    def __repr__(self) -> str:
        puts = sum(1 for op in self._operations if op.type is OperationType.PUT)
        return f"WriteBatch(puts={puts}, deletes={len(self._operations) - puts})"


@dataclass(frozen=True)
class WriteOptions:
    """
    Options for committing a write batch.

    Attributes:
        sync: If True the batch must be durable (survive a crash) before
            ``commit`` returns. If False durability may be deferred.
    """

    sync: bool = False


class KeyValueStore(ABC):
    """
    Abstract base class for ordered key-value stores.

    Implementations must guarantee:
    - Iteration yields entries in natural (bytewise) key order
    - Commits are all-or-nothing per batch
    - ``close`` is safe to call more than once

    Stores are async context managers: entering opens the store and
    exiting closes it on every path, including errors.

    Example:
        >>> async with SQLiteKeyValueStore("/data/source") as store:
        ...     async with contextlib.aclosing(store.iterate()) as entries:
        ...         async for entry in entries:
        ...             print(entry.key)
    """

    @property
    @abstractmethod
    def path(self) -> str:
        """Root path of the store's persistent representation."""
        pass

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True between a successful ``open`` and ``close``."""
        pass

    @abstractmethod
    async def open(self) -> None:
        """
        Open the store.

        Raises:
            OpenError: If the store cannot be opened
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the store. Safe to call multiple times."""
        pass

    @abstractmethod
    def iterate(self) -> AsyncIterator[Entry]:
        """
        Iterate over all entries from the first key, in key order.

        The returned async iterator is lazy and finite. Calling ``iterate``
        again starts a new scan from the beginning; a running scan cannot be
        repositioned. Callers release the iterator with ``aclose()``
        (typically through ``contextlib.aclosing``).

        Raises:
            IterationError: If reading from the store fails
        """
        pass

    @abstractmethod
    async def commit(self, batch: WriteBatch, options: WriteOptions | None = None) -> None:
        """
        Apply a write batch atomically.

        Committing an empty batch is a no-op.

        Args:
            batch: Operations to apply, in order
            options: Durability options (defaults to ``WriteOptions()``)

        Raises:
            CommitError: If the batch could not be applied. The store is
                left as if the batch never ran.
        """
        pass

    @abstractmethod
    async def get(self, key: bytes) -> bytes | None:
        """Return the value stored under ``key`` or None."""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Return the number of entries in the store."""
        pass

    async def __aenter__(self) -> KeyValueStore:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()
