"""
ShrinkEngine - Relocates entries out of an oversized store.

The engine scans the source store once, in key order, and moves entries
into the target store in bounded rounds until the source's on-disk size
drops to a ceiling or the source runs out of entries.

Each round:
    1. Stages ``batch_size`` relocations: a PUT into the target batch and a
       DELETE from the source batch for every entry.
    2. Commits the target batch, then the source batch, each durably.
    3. Re-measures the source size and reports progress.
    4. Stops if the ceiling is met; otherwise starts fresh batches.

Consistency:
    The two stores commit independently, so there is no cross-store
    transaction. The target batch is committed first: if the run fails
    between the two commits, the round's entries exist in both stores
    (duplicated) but are never lost. Running the engine again converges,
    because re-putting an entry into the target is an overwrite and the
    source delete is staged again. Rounds committed before a failure stay
    committed; the failing round is not applied to the store that rejected
    it.

Blocking:
    Size probes are synchronous and run on the event loop; walking a large
    source directory stalls other tasks on the same loop for that long.

Usage:
    >>> from storeshrink import ShrinkEngine, SQLiteKeyValueStore
    >>>
    >>> async with SQLiteKeyValueStore(src) as source, SQLiteKeyValueStore(dst) as target:
    ...     result = await ShrinkEngine().run(source, target, 40_000, 1000)
    ...     print(result.outcome)
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Callable

from storeshrink.exceptions import CommitError, ConfigError
from storeshrink.models import ShrinkOutcome, ShrinkProgress, ShrinkResult
from storeshrink.observability import (
    ATTR_BATCH_SIZE,
    ATTR_ENTRIES_RELOCATED,
    ATTR_ERROR_TYPE,
    ATTR_MAX_SOURCE_SIZE,
    ATTR_OPERATION_COUNT,
    ATTR_OUTCOME,
    ATTR_ROUND,
    ATTR_SOURCE_SIZE,
    ATTR_STORE_PATH,
    ATTR_STORE_ROLE,
    ShrinkMetrics,
    Tracer,
    create_tracer,
)
from storeshrink.probe import DirectorySizeProbe, SizeProbe
from storeshrink.stores.interface import Entry, KeyValueStore, WriteBatch, WriteOptions

logger = logging.getLogger(__name__)


def stage_relocation(entry: Entry, source_batch: WriteBatch, target_batch: WriteBatch) -> None:
    """
    Stage the operation pair that moves ``entry`` from source to target.

    Exactly one operation touches each store: the target receives an
    upsert of the entry and the source receives a delete of its key.
    """
    target_batch.put(entry.key, entry.value)
    source_batch.delete(entry.key)


class ShrinkEngine:
    """
    Moves entries from a source store to a target store until the source
    fits under a size ceiling.

    The engine is single-task: every iteration step, commit and size probe
    is awaited in sequence, so a run can be wrapped in one asyncio task
    without losing ordering or per-batch atomicity.

    Example:
        >>> engine = ShrinkEngine(progress_callback=print)
        >>> result = await engine.run(source, target, max_source_size=40_000, batch_size=1000)
        >>> result.reached_target
        True

    Attributes:
        _size_probe: Measures the source root after every round
        _sync: Whether batches are committed with durability required
        _size_tolerance: Growth in bytes between probes tolerated silently
        _metrics: Metrics container (one is created per run if not given)
        _progress_callback: Called with a ShrinkProgress after every round
    """

    def __init__(
        self,
        size_probe: SizeProbe | None = None,
        *,
        sync: bool = True,
        size_tolerance: int = 0,
        metrics: ShrinkMetrics | None = None,
        enable_metrics: bool = True,
        progress_callback: Callable[[ShrinkProgress], None] | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the engine.

        Args:
            size_probe: Probe used to measure the source. Defaults to a
                DirectorySizeProbe over the source's root path.
            sync: Commit every batch with durability required (default True)
            size_tolerance: Bytes a probe may grow over the previous one
                before a warning is logged (default 0)
            metrics: Optional metrics container shared across runs
            enable_metrics: Whether per-run metrics emit to OpenTelemetry.
                Ignored if metrics is explicitly provided.
            progress_callback: Optional callback for progress updates
            tracer: Optional custom Tracer instance. If not provided, one is
                   created based on enable_tracing setting.
            enable_tracing: Whether to enable OpenTelemetry tracing.
                          Ignored if tracer is explicitly provided.
        """
        if size_tolerance < 0:
            raise ValueError(f"size_tolerance must be >= 0, got {size_tolerance}")
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._size_probe = size_probe or DirectorySizeProbe(enable_tracing=enable_tracing)
        self._sync = sync
        self._size_tolerance = size_tolerance
        self._metrics = metrics
        self._enable_metrics = enable_metrics
        self._progress_callback = progress_callback

    async def run(
        self,
        source: KeyValueStore,
        target: KeyValueStore,
        max_source_size: int,
        batch_size: int,
    ) -> ShrinkResult:
        """
        Relocate entries until the source fits under ``max_source_size``.

        Both stores must already be open; the engine never opens or closes
        them.

        Args:
            source: Store to shrink
            target: Store receiving the relocated entries
            max_source_size: Ceiling in bytes for the source (>= 1)
            batch_size: Entries per commit round (>= 1)

        Returns:
            ShrinkResult with TARGET_REACHED or SOURCE_DRAINED

        Raises:
            ConfigError: If max_source_size or batch_size is below 1
            SizeProbeError: If the source size cannot be measured
            IterationError: If reading the source fails
            CommitError: If either store rejects a batch
        """
        if max_source_size < 1:
            raise ConfigError(f"max_source_size must be >= 1, got {max_source_size}")
        if batch_size < 1:
            raise ConfigError(f"batch_size must be >= 1, got {batch_size}")

        metrics = self._metrics or ShrinkMetrics(
            source=source.path,
            target=target.path,
            enable_metrics=self._enable_metrics,
        )

        with self._tracer.span(
            "storeshrink.engine.run",
            {
                ATTR_STORE_PATH: source.path,
                ATTR_MAX_SOURCE_SIZE: max_source_size,
                ATTR_BATCH_SIZE: batch_size,
            },
        ) as span:
            run = _Run(
                engine=self,
                source=source,
                target=target,
                max_source_size=max_source_size,
                batch_size=batch_size,
                metrics=metrics,
            )
            result = await run.execute()

            if span is not None:
                span.set_attribute(ATTR_OUTCOME, result.outcome.value)
                span.set_attribute(ATTR_ENTRIES_RELOCATED, result.entries_relocated)

        logger.info(
            "Relocation finished (%s): %d entries in %d rounds, source %d -> %d bytes in %.1fs",
            result.outcome.value,
            result.entries_relocated,
            result.rounds_committed,
            result.initial_source_size,
            result.final_source_size,
            result.duration_seconds,
        )
        return result


class _Run:
    """State of a single ShrinkEngine.run call."""

    def __init__(
        self,
        engine: ShrinkEngine,
        source: KeyValueStore,
        target: KeyValueStore,
        max_source_size: int,
        batch_size: int,
        metrics: ShrinkMetrics,
    ) -> None:
        self._engine = engine
        self._tracer = engine._tracer
        self._source = source
        self._target = target
        self._max_source_size = max_source_size
        self._batch_size = batch_size
        self._metrics = metrics
        self._options = WriteOptions(sync=engine._sync)

        self._start_time = time.monotonic()
        self._round_start = self._start_time
        self._source_batch = WriteBatch()
        self._target_batch = WriteBatch()
        self._pending = 0
        self._rounds = 0
        self._relocated = 0
        self._size_history: list[int] = []

    @property
    def _last_size(self) -> int:
        return self._size_history[-1]

    def _probe(self) -> int:
        size = self._engine._size_probe.measure(self._source.path)
        if self._size_history and size > self._last_size + self._engine._size_tolerance:
            logger.warning(
                "Source %s grew from %d to %d bytes after round %d",
                self._source.path,
                self._last_size,
                size,
                self._rounds,
            )
        self._size_history.append(size)
        self._metrics.record_source_size(size)
        return size

    async def execute(self) -> ShrinkResult:
        initial = self._probe()
        logger.info(
            "Starting relocation from %s to %s: source %d bytes, ceiling %d, batch size %d",
            self._source.path,
            self._target.path,
            initial,
            self._max_source_size,
            self._batch_size,
        )

        if initial <= self._max_source_size:
            return self._result(ShrinkOutcome.TARGET_REACHED)

        async with contextlib.aclosing(self._source.iterate()) as entries:
            async for entry in entries:
                stage_relocation(entry, self._source_batch, self._target_batch)
                self._pending += 1

                if self._pending >= self._batch_size:
                    await self._commit_round(is_last=False)
                    if self._last_size <= self._max_source_size:
                        return self._result(ShrinkOutcome.TARGET_REACHED)

        if self._pending:
            await self._commit_round(is_last=True)
            if self._last_size <= self._max_source_size:
                return self._result(ShrinkOutcome.TARGET_REACHED)

        return self._result(ShrinkOutcome.SOURCE_DRAINED)

    async def _commit_round(self, is_last: bool) -> None:
        round_number = self._rounds + 1

        with self._tracer.span(
            "storeshrink.engine.commit_round",
            {
                ATTR_ROUND: round_number,
                ATTR_OPERATION_COUNT: self._pending,
            },
        ):
            await self._commit(self._target, self._target_batch, "target", round_number)
            await self._commit(self._source, self._source_batch, "source", round_number)

            entries = self._pending
            self._rounds = round_number
            self._relocated += entries
            self._pending = 0
            self._target_batch = WriteBatch()
            self._source_batch = WriteBatch()

            size = self._probe()

        now = time.monotonic()
        self._metrics.record_round(entries, now - self._round_start, size)
        self._round_start = now

        elapsed = now - self._start_time
        progress = ShrinkProgress(
            round_number=round_number,
            entries_in_round=entries,
            entries_relocated=self._relocated,
            source_size=size,
            max_source_size=self._max_source_size,
            initial_source_size=self._size_history[0],
            entries_per_second=self._relocated / elapsed if elapsed > 0 else 0.0,
            is_complete=is_last or size <= self._max_source_size,
        )
        logger.info(
            "Round %d: relocated %d entries, source size %d, target size %d",
            round_number,
            entries,
            size,
            self._max_source_size,
        )
        if self._engine._progress_callback:
            self._engine._progress_callback(progress)

    async def _commit(
        self,
        store: KeyValueStore,
        batch: WriteBatch,
        role: str,
        round_number: int,
    ) -> None:
        with self._tracer.span(
            "storeshrink.engine.commit",
            {
                ATTR_STORE_ROLE: role,
                ATTR_STORE_PATH: store.path,
                ATTR_ROUND: round_number,
            },
        ) as span:
            try:
                await store.commit(batch, self._options)
            except CommitError as e:
                error_type = type(e.__cause__ or e).__name__
                if span is not None:
                    span.set_attribute(ATTR_ERROR_TYPE, error_type)
                self._metrics.record_commit_failure(role, error_type)
                logger.error(
                    "Round %d: commit to %s store %s failed: %s",
                    round_number,
                    role,
                    store.path,
                    e.reason,
                )
                raise e.with_context(role, round_number) from e

    def _result(self, outcome: ShrinkOutcome) -> ShrinkResult:
        return ShrinkResult(
            outcome=outcome,
            entries_relocated=self._relocated,
            rounds_committed=self._rounds,
            initial_source_size=self._size_history[0],
            final_source_size=self._last_size,
            max_source_size=self._max_source_size,
            duration_seconds=time.monotonic() - self._start_time,
            size_history=list(self._size_history),
        )


__all__ = [
    "ShrinkEngine",
    "stage_relocation",
]
