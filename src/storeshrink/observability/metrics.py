"""
OpenTelemetry metrics for store shrinking runs.

Tracks entries relocated, committed rounds, round durations, commit
failures and the most recent source size probe.

The metrics gracefully degrade when OpenTelemetry is not installed -
all operations become no-ops without raising errors.

Example:
    >>> from storeshrink.observability import ShrinkMetrics
    >>>
    >>> metrics = ShrinkMetrics(source="/data/source", target="/data/target")
    >>> metrics.record_round(entries=1000, duration_seconds=0.8, source_size=48_000)
    >>> metrics.record_commit_failure("target", "CommitError")

Metrics Exposed:
    - storeshrink.entries.relocated (Counter): Entries moved from source to target
    - storeshrink.rounds.committed (Counter): Commit rounds completed
    - storeshrink.round.duration (Histogram): Time taken by each round
    - storeshrink.commit.failures (Counter): Failed batch commits, by store role
    - storeshrink.source.size (Gauge): Last measured source size in bytes

All metrics include the 'source' and 'target' attributes for filtering.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Optional OpenTelemetry import - single source of truth
try:
    from opentelemetry import metrics

    OTEL_METRICS_AVAILABLE = True
except ImportError:
    OTEL_METRICS_AVAILABLE = False
    metrics = None  # type: ignore[assignment]


# Module-level meter instance
_meter: Any = None


def _get_meter() -> Any:
    """
    Get or create the meter instance.

    Returns:
        OpenTelemetry Meter or None
    """
    global _meter
    if _meter is None and OTEL_METRICS_AVAILABLE and metrics is not None:
        _meter = metrics.get_meter("storeshrink", version="1.0.0")
    return _meter


def reset_meter() -> None:
    """
    Reset the global meter instance.

    Useful for testing to ensure fresh meter state between tests.
    """
    global _meter
    _meter = None


class NoOpCounter:
    """No-op counter when OpenTelemetry is not available."""

    def add(
        self,
        amount: int | float,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        """No-op add operation."""
        pass


class NoOpHistogram:
    """No-op histogram when OpenTelemetry is not available."""

    def record(
        self,
        value: float,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        """No-op record operation."""
        pass


@dataclass(frozen=True)
class ShrinkMetricSnapshot:
    """
    Snapshot of current metric values for a run.

    Useful for testing and debugging to see what values
    would be reported to OpenTelemetry.

    Attributes:
        entries_relocated: Total entries relocated
        rounds_committed: Number of rounds committed to both stores
        commit_failures: Failed commits keyed by store role
        source_size: Last measured source size in bytes (-1 if never probed)
        round_durations: Duration in seconds of each committed round
    """

    entries_relocated: int = 0
    rounds_committed: int = 0
    commit_failures: dict[str, int] = field(default_factory=dict)
    source_size: int = -1
    round_durations: list[float] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "entries_relocated": self.entries_relocated,
            "rounds_committed": self.rounds_committed,
            "commit_failures": dict(self.commit_failures),
            "source_size": self.source_size,
            "round_durations": list(self.round_durations),
        }


@dataclass
class ShrinkMetrics:
    """
    Container for shrink-run metrics instruments.

    All methods are safe to call even when OpenTelemetry is not
    installed - they become no-ops apart from the internal snapshot.

    Attributes:
        source: Source store path for metric labels
        target: Target store path for metric labels
        enable_metrics: Whether metrics are enabled (default True)
    """

    source: str
    target: str
    enable_metrics: bool = True

    # Internal state
    _meter: Any = field(default=None, init=False, repr=False)
    _entries_counter: Any = field(default=None, init=False, repr=False)
    _rounds_counter: Any = field(default=None, init=False, repr=False)
    _round_duration_histogram: Any = field(default=None, init=False, repr=False)
    _commit_failures_counter: Any = field(default=None, init=False, repr=False)
    _source_size_value: int = field(default=-1, init=False, repr=False)

    # Internal counters for snapshot
    _entries_count: int = field(default=0, init=False, repr=False)
    _rounds_count: int = field(default=0, init=False, repr=False)
    _failures: dict[str, int] = field(default_factory=dict, init=False, repr=False)
    _round_durations: list[float] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        """Initialize metric instruments."""
        if self.enable_metrics and OTEL_METRICS_AVAILABLE:
            self._setup_metrics()
        else:
            self._setup_noop()

    def _setup_metrics(self) -> None:
        """Set up OpenTelemetry metric instruments."""
        self._meter = _get_meter()

        if self._meter is None:
            self._setup_noop()
            return

        self._entries_counter = self._meter.create_counter(
            name="storeshrink.entries.relocated",
            unit="entries",
            description="Entries moved from the source store to the target store",
        )

        self._rounds_counter = self._meter.create_counter(
            name="storeshrink.rounds.committed",
            unit="rounds",
            description="Commit rounds applied to both stores",
        )

        self._round_duration_histogram = self._meter.create_histogram(
            name="storeshrink.round.duration",
            unit="s",
            description="Time spent staging, committing and probing one round",
        )

        self._commit_failures_counter = self._meter.create_counter(
            name="storeshrink.commit.failures",
            unit="commits",
            description="Batch commits that failed, by store role",
        )

        self._meter.create_observable_gauge(
            name="storeshrink.source.size",
            callbacks=[self._observe_source_size],
            unit="By",
            description="Most recent on-disk size of the source store",
        )

    def _setup_noop(self) -> None:
        """Set up no-op instruments when OTel not available."""
        self._entries_counter = NoOpCounter()
        self._rounds_counter = NoOpCounter()
        self._round_duration_histogram = NoOpHistogram()
        self._commit_failures_counter = NoOpCounter()

    def _base_attributes(self) -> dict[str, str]:
        """Get base attributes for all metrics."""
        return {
            "source": self.source,
            "target": self.target,
        }

    def _observe_source_size(self, options: Any) -> Any:
        """Callback for the observable source size gauge."""
        if OTEL_METRICS_AVAILABLE and self._source_size_value >= 0:
            from opentelemetry.metrics import Observation

            yield Observation(
                value=self._source_size_value,
                attributes=self._base_attributes(),
            )

    def record_source_size(self, size: int) -> None:
        """Update the last measured source size."""
        self._source_size_value = size

    def record_round(
        self,
        entries: int,
        duration_seconds: float,
        source_size: int,
    ) -> None:
        """
        Record a committed round.

        Args:
            entries: Entries relocated in this round
            duration_seconds: Time taken by the round
            source_size: Source size measured after the round
        """
        attrs = self._base_attributes()
        self._entries_counter.add(entries, attrs)
        self._rounds_counter.add(1, attrs)
        self._round_duration_histogram.record(duration_seconds, attrs)
        self.record_source_size(source_size)

        self._entries_count += entries
        self._rounds_count += 1
        self._round_durations.append(duration_seconds)

    def record_commit_failure(
        self,
        role: str,
        error_type: str | None = None,
    ) -> None:
        """
        Record a failed batch commit.

        Args:
            role: Store role that rejected the batch ('source' or 'target')
            error_type: Type of error that caused the failure
        """
        attrs = {**self._base_attributes(), "role": role}
        if error_type:
            attrs["error_type"] = error_type
        self._commit_failures_counter.add(1, attrs)

        self._failures[role] = self._failures.get(role, 0) + 1

    def get_snapshot(self) -> ShrinkMetricSnapshot:
        """
        Get a snapshot of current metric values.

        Returns:
            ShrinkMetricSnapshot with current values
        """
        return ShrinkMetricSnapshot(
            entries_relocated=self._entries_count,
            rounds_committed=self._rounds_count,
            commit_failures=dict(self._failures),
            source_size=self._source_size_value,
            round_durations=list(self._round_durations),
        )

    @property
    def metrics_enabled(self) -> bool:
        """True if metrics are enabled and OTel is available."""
        return self.enable_metrics and OTEL_METRICS_AVAILABLE


__all__ = [
    "OTEL_METRICS_AVAILABLE",
    "ShrinkMetrics",
    "ShrinkMetricSnapshot",
    "NoOpCounter",
    "NoOpHistogram",
    "reset_meter",
]
