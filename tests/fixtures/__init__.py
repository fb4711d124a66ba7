"""
Shared test fixtures for the storeshrink library.

Usage:
    from tests.fixtures import (
        BrokenIterationStore,
        RecordingStore,
        ScriptedProbe,
        StoreBytesProbe,
        make_entries,
        make_key,
        populate,
    )
"""

from tests.fixtures.stores import (
    BrokenIterationStore,
    RecordingStore,
    ScriptedProbe,
    StoreBytesProbe,
    make_entries,
    make_key,
    populate,
)

__all__ = [
    "BrokenIterationStore",
    "RecordingStore",
    "ScriptedProbe",
    "StoreBytesProbe",
    "make_entries",
    "make_key",
    "populate",
]
