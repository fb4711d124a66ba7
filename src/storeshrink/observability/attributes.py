"""
Standard span and metric attributes for storeshrink.

This module defines attribute constants used across storeshrink components
for consistent span naming and metrics labeling. These follow OpenTelemetry
semantic conventions where applicable.

Example:
    >>> from storeshrink.observability.attributes import (
    ...     ATTR_BATCH_SIZE,
    ...     ATTR_STORE_PATH,
    ... )
    >>>
    >>> with tracer.span(
    ...     "storeshrink.engine.run",
    ...     {
    ...         ATTR_STORE_PATH: source.path,
    ...         ATTR_BATCH_SIZE: 1000,
    ...     },
    ... ):
    ...     pass
"""

# =============================================================================
# Store Attributes
# =============================================================================

ATTR_STORE_PATH = "storeshrink.store.path"
"""Root path of the store on disk (string)."""

ATTR_STORE_ROLE = "storeshrink.store.role"
"""Role of the store in a run: 'source' or 'target'."""

ATTR_OPERATION_COUNT = "storeshrink.batch.operation_count"
"""Number of put/delete operations in a write batch (integer)."""

ATTR_SYNC = "storeshrink.batch.sync"
"""Whether the batch was committed with durability required (boolean)."""

# =============================================================================
# Database Attributes (OpenTelemetry Semantic Conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'sqlite', 'memory')."""

ATTR_DB_NAME = "db.name"
"""Database file name."""

ATTR_DB_OPERATION = "db.operation"
"""Database operation type (e.g., 'COMMIT', 'SELECT')."""

# =============================================================================
# Relocation Attributes
# =============================================================================

ATTR_BATCH_SIZE = "storeshrink.batch.size"
"""Configured number of entries per round (integer)."""

ATTR_MAX_SOURCE_SIZE = "storeshrink.source.max_size"
"""Ceiling in bytes for the source store (integer)."""

ATTR_SOURCE_SIZE = "storeshrink.source.size"
"""Measured size of the source store in bytes (integer)."""

ATTR_ROUND = "storeshrink.round"
"""Sequence number of a commit round, 1-based (integer)."""

ATTR_ENTRIES_RELOCATED = "storeshrink.entries.relocated"
"""Number of entries relocated so far (integer)."""

ATTR_OUTCOME = "storeshrink.outcome"
"""Terminal outcome of a run ('target_reached' or 'source_drained')."""

ATTR_ERROR_TYPE = "storeshrink.error.type"
"""Exception class name when an operation fails."""

__all__ = [
    "ATTR_STORE_PATH",
    "ATTR_STORE_ROLE",
    "ATTR_OPERATION_COUNT",
    "ATTR_SYNC",
    "ATTR_DB_SYSTEM",
    "ATTR_DB_NAME",
    "ATTR_DB_OPERATION",
    "ATTR_BATCH_SIZE",
    "ATTR_MAX_SOURCE_SIZE",
    "ATTR_SOURCE_SIZE",
    "ATTR_ROUND",
    "ATTR_ENTRIES_RELOCATED",
    "ATTR_OUTCOME",
    "ATTR_ERROR_TYPE",
]
