"""Key-value store implementations for the storeshrink package."""

from storeshrink.stores.in_memory import InMemoryKeyValueStore
from storeshrink.stores.interface import (
    Entry,
    KeyValueStore,
    Operation,
    OperationType,
    WriteBatch,
    WriteOptions,
)
from storeshrink.stores.sqlite import DATABASE_FILENAME, SQLiteKeyValueStore

__all__ = [
    # Data structures
    "Entry",
    "Operation",
    "OperationType",
    "WriteBatch",
    "WriteOptions",
    # Abstract base classes
    "KeyValueStore",
    # Concrete implementations
    "InMemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "DATABASE_FILENAME",
]
