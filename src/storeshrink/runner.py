"""
Process-level wiring for the two run modes.

- ``measure_store``: stats mode, probes the source and returns its size
- ``relocate``: opens both stores, runs the engine, closes both stores

Stores are exclusively owned by one call and passed explicitly to the
engine; there is no module-level state.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable

from storeshrink.config import ShrinkConfig
from storeshrink.engine import ShrinkEngine
from storeshrink.exceptions import ConfigError
from storeshrink.models import ShrinkProgress, ShrinkResult
from storeshrink.probe import DirectorySizeProbe, SizeProbe
from storeshrink.stores.sqlite import SQLiteKeyValueStore

logger = logging.getLogger(__name__)


def measure_store(config: ShrinkConfig, size_probe: SizeProbe | None = None) -> int:
    """
    Measure the on-disk size of the configured source store.

    Raises:
        SizeProbeError: If the size cannot be measured
    """
    probe = size_probe or DirectorySizeProbe(enable_tracing=config.enable_tracing)
    return probe.measure(str(config.source_dir))


async def relocate(
    config: ShrinkConfig,
    *,
    progress_callback: Callable[[ShrinkProgress], None] | None = None,
    size_probe: SizeProbe | None = None,
) -> ShrinkResult:
    """
    Shrink the configured source store into the configured target store.

    The source must already exist; the target is created if missing. Both
    stores are closed on every exit path.

    Args:
        config: Relocation-mode configuration
        progress_callback: Optional callback for per-round progress
        size_probe: Optional probe (defaults to a DirectorySizeProbe)

    Returns:
        ShrinkResult describing how the run ended

    Raises:
        ConfigError: If config is a stats-mode configuration
        OpenError: If either store cannot be opened
        SizeProbeError, IterationError, CommitError: From the engine
    """
    if config.stats or config.target_dir is None or config.max_size is None:
        raise ConfigError("relocation needs a target directory and a max size")

    engine = ShrinkEngine(
        size_probe,
        sync=config.sync,
        progress_callback=progress_callback,
        enable_tracing=config.enable_tracing,
    )

    async with contextlib.AsyncExitStack() as stack:
        source = await stack.enter_async_context(
            SQLiteKeyValueStore(
                config.source_dir,
                create_if_missing=False,
                enable_tracing=config.enable_tracing,
            )
        )
        target = await stack.enter_async_context(
            SQLiteKeyValueStore(
                config.target_dir,
                enable_tracing=config.enable_tracing,
            )
        )
        logger.debug("Opened source %s and target %s", source.path, target.path)
        return await engine.run(source, target, config.max_size, config.batch_size)


__all__ = [
    "measure_store",
    "relocate",
]
