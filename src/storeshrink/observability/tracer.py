"""
Span factories used by stores, the size probe and the engine.

Every traced component takes an optional ``tracer`` argument and an
``enable_tracing`` flag, and falls back to ``create_tracer``. OpenTelemetry
is only imported here; when it is missing every component gets a
``NullTracer`` and spans cost nothing.

Example:
    >>> from storeshrink.observability import MockTracer
    >>> from storeshrink.stores import InMemoryKeyValueStore
    >>>
    >>> tracer = MockTracer()
    >>> store = InMemoryKeyValueStore("mem://demo", tracer=tracer)
    >>> # ... open the store and commit a batch ...
    >>> tracer.span_names
    ['storeshrink.in_memory_store.commit']
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from opentelemetry.trace import Span

try:
    from opentelemetry import trace

    OTEL_AVAILABLE = True
except ImportError:
    OTEL_AVAILABLE = False
    trace = None  # type: ignore[assignment]

SpanAttributes = dict[str, Any]


@runtime_checkable
class Tracer(Protocol):
    """
    Anything that can open a named span around a block of work.

    ``span`` yields the live OpenTelemetry span, or None when nothing is
    recorded, so callers guard late ``set_attribute`` calls with
    ``if span is not None``.
    """

    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> AbstractContextManager[Span | None]: ...

    @property
    def enabled(self) -> bool:
        """True if spans opened by this tracer are exported."""
        ...


class NullTracer:
    """Tracer used when tracing is switched off or OpenTelemetry is missing."""

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> Iterator[None]:
        yield None

    @property
    def enabled(self) -> bool:
        return False


class OpenTelemetryTracer:
    """
    Tracer backed by the globally configured OpenTelemetry provider.

    Spans are started as the current span, so a store commit opened inside
    an engine round nests under that round.
    """

    def __init__(self, tracer_name: str) -> None:
        from opentelemetry import trace

        self._tracer = trace.get_tracer(tracer_name)

    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> AbstractContextManager[Span | None]:
        return self._tracer.start_as_current_span(name, attributes=attributes or {})

    @property
    def enabled(self) -> bool:
        return True


class MockTracer:
    """
    Tracer for tests: remembers every span opened, in order.

    Example:
        >>> tracer = MockTracer()
        >>> with tracer.span("storeshrink.engine.run", {"storeshrink.round": 1}):
        ...     pass
        >>> tracer.spans
        [('storeshrink.engine.run', {'storeshrink.round': 1})]
    """

    def __init__(self) -> None:
        self.spans: list[tuple[str, SpanAttributes | None]] = []

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: SpanAttributes | None = None,
    ) -> Iterator[None]:
        self.spans.append((name, attributes))
        yield None

    @property
    def enabled(self) -> bool:
        # lets callers exercise their attribute-building paths
        return True

    @property
    def span_names(self) -> list[str]:
        """Names of the recorded spans."""
        return [name for name, _ in self.spans]

    def clear(self) -> None:
        self.spans.clear()


def create_tracer(name: str, enable_tracing: bool = True) -> Tracer:
    """
    Pick the tracer a component should use.

    Args:
        name: Instrumentation scope, usually the caller's ``__name__``
        enable_tracing: False forces a NullTracer

    Returns:
        OpenTelemetryTracer when tracing is on and OpenTelemetry is
        importable, NullTracer otherwise
    """
    if enable_tracing and OTEL_AVAILABLE:
        return OpenTelemetryTracer(name)
    return NullTracer()


__all__ = [
    "OTEL_AVAILABLE",
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
]
