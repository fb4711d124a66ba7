"""
storeshrink - Shrink an oversized key-value store in bounded batches.

This library provides:
- Ordered key-value stores with SQLite and In-Memory backends
- A directory size probe that is independent of the store engine
- ShrinkEngine, which relocates entries from a source store into a target
  store, round by round, until the source fits under a size ceiling
- A command line tool with a read-only stats mode
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("storeshrink")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from storeshrink.config import ShrinkConfig
from storeshrink.engine import ShrinkEngine, stage_relocation
from storeshrink.exceptions import (
    CommitError,
    ConfigError,
    IterationError,
    OpenError,
    SizeProbeError,
    StoreShrinkError,
)
from storeshrink.models import ShrinkOutcome, ShrinkProgress, ShrinkResult
from storeshrink.probe import DirectorySizeProbe, SizeProbe, measure_size
from storeshrink.runner import measure_store, relocate
from storeshrink.stores import (
    Entry,
    InMemoryKeyValueStore,
    KeyValueStore,
    Operation,
    OperationType,
    SQLiteKeyValueStore,
    WriteBatch,
    WriteOptions,
)

__all__ = [
    "__version__",
    # Engine
    "ShrinkEngine",
    "stage_relocation",
    "ShrinkOutcome",
    "ShrinkProgress",
    "ShrinkResult",
    # Configuration and wiring
    "ShrinkConfig",
    "measure_store",
    "relocate",
    # Size probe
    "SizeProbe",
    "DirectorySizeProbe",
    "measure_size",
    # Stores
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "Entry",
    "Operation",
    "OperationType",
    "WriteBatch",
    "WriteOptions",
    # Exceptions
    "StoreShrinkError",
    "ConfigError",
    "OpenError",
    "SizeProbeError",
    "IterationError",
    "CommitError",
]
