"""
Observability utilities for storeshrink.

This module provides tracing, metrics and standard attribute definitions
for consistent observability across storeshrink components.

Note:
    OpenTelemetry is an optional dependency. All utilities in this module
    gracefully handle the case where OpenTelemetry is not installed.
"""

from storeshrink.observability.attributes import (
    ATTR_BATCH_SIZE,
    ATTR_DB_NAME,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_ENTRIES_RELOCATED,
    ATTR_ERROR_TYPE,
    ATTR_MAX_SOURCE_SIZE,
    ATTR_OPERATION_COUNT,
    ATTR_OUTCOME,
    ATTR_ROUND,
    ATTR_SOURCE_SIZE,
    ATTR_STORE_PATH,
    ATTR_STORE_ROLE,
    ATTR_SYNC,
)
from storeshrink.observability.metrics import (
    OTEL_METRICS_AVAILABLE,
    ShrinkMetrics,
    ShrinkMetricSnapshot,
    reset_meter,
)
from storeshrink.observability.tracer import (
    OTEL_AVAILABLE,
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer (composition-based API)
    "OTEL_AVAILABLE",
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Metrics
    "OTEL_METRICS_AVAILABLE",
    "ShrinkMetrics",
    "ShrinkMetricSnapshot",
    "reset_meter",
    # Attributes - Store
    "ATTR_STORE_PATH",
    "ATTR_STORE_ROLE",
    "ATTR_OPERATION_COUNT",
    "ATTR_SYNC",
    # Attributes - Database
    "ATTR_DB_SYSTEM",
    "ATTR_DB_NAME",
    "ATTR_DB_OPERATION",
    # Attributes - Relocation
    "ATTR_BATCH_SIZE",
    "ATTR_MAX_SOURCE_SIZE",
    "ATTR_SOURCE_SIZE",
    "ATTR_ROUND",
    "ATTR_ENTRIES_RELOCATED",
    "ATTR_OUTCOME",
    "ATTR_ERROR_TYPE",
]
