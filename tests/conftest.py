"""
Shared pytest fixtures for the storeshrink tests.

This module provides:
- In-memory store fixtures (source_store, target_store) opened for the test
- Recording store fixtures that capture every commit
- SQLite store fixtures rooted in a temporary directory
- Tracer and metrics fixtures
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from storeshrink.observability import MockTracer, ShrinkMetrics
from storeshrink.stores.in_memory import InMemoryKeyValueStore
from storeshrink.stores.sqlite import SQLiteKeyValueStore
from tests.fixtures import RecordingStore

# ============================================================================
# OpenTelemetry Metrics Availability Check
# ============================================================================

OTEL_METRICS_AVAILABLE = False
try:
    from opentelemetry.sdk.metrics import MeterProvider  # noqa: F401

    OTEL_METRICS_AVAILABLE = True
except ImportError:
    pass

skip_if_no_otel_metrics = pytest.mark.skipif(
    not OTEL_METRICS_AVAILABLE, reason="opentelemetry-sdk not installed"
)


# =============================================================================
# In-Memory Store Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def source_store() -> AsyncGenerator[InMemoryKeyValueStore, None]:
    """Provide an open, empty in-memory source store."""
    async with InMemoryKeyValueStore("mem://source", enable_tracing=False) as store:
        yield store


@pytest_asyncio.fixture
async def target_store() -> AsyncGenerator[InMemoryKeyValueStore, None]:
    """Provide an open, empty in-memory target store."""
    async with InMemoryKeyValueStore("mem://target", enable_tracing=False) as store:
        yield store


@pytest_asyncio.fixture
async def recording_source() -> AsyncGenerator[RecordingStore, None]:
    """Provide an open source store that records commits."""
    async with RecordingStore("mem://source") as store:
        yield store


@pytest_asyncio.fixture
async def recording_target() -> AsyncGenerator[RecordingStore, None]:
    """Provide an open target store that records commits."""
    async with RecordingStore("mem://target") as store:
        yield store


# =============================================================================
# SQLite Fixtures
# =============================================================================


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """Directory for an on-disk source store (not created)."""
    return tmp_path / "source"


@pytest.fixture
def target_dir(tmp_path: Path) -> Path:
    """Directory for an on-disk target store (not created)."""
    return tmp_path / "target"


@pytest_asyncio.fixture
async def sqlite_store(tmp_path: Path) -> AsyncGenerator[SQLiteKeyValueStore, None]:
    """Provide an open SQLite store in a fresh temporary directory."""
    async with SQLiteKeyValueStore(tmp_path / "store", enable_tracing=False) as store:
        yield store


# =============================================================================
# Observability Fixtures
# =============================================================================


@pytest.fixture
def mock_tracer() -> MockTracer:
    """Provide a tracer that records span names and attributes."""
    return MockTracer()


@pytest.fixture
def metrics() -> ShrinkMetrics:
    """Provide a metrics container with OpenTelemetry export disabled."""
    return ShrinkMetrics(source="mem://source", target="mem://target", enable_metrics=False)
