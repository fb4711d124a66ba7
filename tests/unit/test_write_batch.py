"""
Unit tests for the store interface types.

Tests for:
- Entry and Operation value objects
- WriteBatch staging, ordering and type checks
- WriteOptions defaults
"""

import dataclasses

import pytest

from storeshrink.stores.interface import (
    Entry,
    Operation,
    OperationType,
    WriteBatch,
    WriteOptions,
)


class TestEntry:
    """Tests for Entry."""

    def test_size_counts_key_and_value(self):
        assert Entry(b"key", b"value").size == 8

    def test_is_immutable(self):
        entry = Entry(b"k", b"v")
        with pytest.raises(dataclasses.FrozenInstanceError):
            entry.value = b"other"  # type: ignore[misc]


class TestWriteBatch:
    """Tests for WriteBatch."""

    def test_new_batch_is_empty(self):
        batch = WriteBatch()
        assert batch.is_empty
        assert len(batch) == 0
        assert list(batch) == []

    def test_operations_keep_insertion_order(self):
        batch = WriteBatch()
        batch.put(b"b", b"2")
        batch.delete(b"a")
        batch.put(b"a", b"1")

        assert batch.operations == [
            Operation(OperationType.PUT, b"b", b"2"),
            Operation(OperationType.DELETE, b"a"),
            Operation(OperationType.PUT, b"a", b"1"),
        ]

    def test_operations_property_returns_copy(self):
        batch = WriteBatch()
        batch.put(b"a", b"1")

        batch.operations.clear()

        assert len(batch) == 1

    def test_clear_drops_staged_operations(self):
        batch = WriteBatch()
        batch.put(b"a", b"1")
        batch.delete(b"b")

        batch.clear()

        assert batch.is_empty

    def test_accepts_bytes_like_values(self):
        batch = WriteBatch()
        batch.put(bytearray(b"k"), memoryview(b"v"))

        (op,) = batch
        assert op.key == b"k"
        assert op.value == b"v"
        assert type(op.key) is bytes

    @pytest.mark.parametrize("key", ["text", 42, None])
    def test_rejects_non_bytes_key(self, key):
        batch = WriteBatch()
        with pytest.raises(TypeError, match="key must be bytes"):
            batch.put(key, b"v")
        with pytest.raises(TypeError, match="key must be bytes"):
            batch.delete(key)

    def test_rejects_non_bytes_value(self):
        with pytest.raises(TypeError, match="value must be bytes"):
            WriteBatch().put(b"k", "v")  # type: ignore[arg-type]

    def test_repr_counts_operation_types(self):
        batch = WriteBatch()
        batch.put(b"a", b"1")
        batch.put(b"b", b"2")
        batch.delete(b"c")

        assert repr(batch) == "WriteBatch(puts=2, deletes=1)"


class TestWriteOptions:
    """Tests for WriteOptions."""

    def test_sync_defaults_to_false(self):
        assert WriteOptions().sync is False

    def test_sync_can_be_requested(self):
        assert WriteOptions(sync=True).sync is True
