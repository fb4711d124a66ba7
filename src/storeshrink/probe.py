"""
On-disk size measurement for stores.

The probe knows nothing about a store engine's file layout: it sums the
byte length of every non-directory entry below a root path. Directories
contribute nothing themselves, and symbolic links below the root are
counted by their own size and never followed.
"""

from __future__ import annotations

import logging
import os
import stat
from typing import Protocol, runtime_checkable

from storeshrink.exceptions import SizeProbeError
from storeshrink.observability import ATTR_SOURCE_SIZE, ATTR_STORE_PATH, Tracer, create_tracer

logger = logging.getLogger(__name__)


def measure_size(path: str | os.PathLike[str]) -> int:
    """
    Return the total size in bytes of all files below ``path``.

    If ``path`` is itself a file, its own size is returned.

    Entries that vanish between listing their directory and stat-ing them
    are skipped, so the call tolerates concurrent writers (the result is a
    best-effort snapshot). Any other failure aborts the measurement.

    Args:
        path: Root path of a store

    Returns:
        Total occupied bytes

    Raises:
        SizeProbeError: If the root does not exist or any directory or entry
            below it cannot be read
    """
    root = os.fspath(path)
    try:
        info = os.stat(root)
    except OSError as e:
        raise SizeProbeError(root, e.strerror or str(e)) from e

    if not stat.S_ISDIR(info.st_mode):
        return info.st_size

    total = 0
    pending = [root]
    while pending:
        directory = pending.pop()
        try:
            with os.scandir(directory) as entries:
                for entry in entries:
                    try:
                        if entry.is_dir(follow_symlinks=False):
                            pending.append(entry.path)
                        else:
                            total += entry.stat(follow_symlinks=False).st_size
                    except FileNotFoundError:
                        continue
        except FileNotFoundError as e:
            if directory == root:
                raise SizeProbeError(root, e.strerror or str(e)) from e
        except OSError as e:
            raise SizeProbeError(root, f"{e.filename or directory}: {e.strerror or e}") from e
    return total


@runtime_checkable
class SizeProbe(Protocol):
    """Anything that can report the on-disk size of a store root."""

    def measure(self, path: str) -> int:
        """
        Return the occupied bytes under ``path``.

        Raises:
            SizeProbeError: If the size cannot be measured
        """
        ...


class DirectorySizeProbe:
    """
    Size probe that walks the store's root directory.

    Stateless: every call walks the tree again, nothing is cached.

    Example:
        >>> probe = DirectorySizeProbe()
        >>> probe.measure("/data/source")
        52_428_800
    """

    def __init__(
        self,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    def measure(self, path: str) -> int:
        with self._tracer.span("storeshrink.probe.measure", {ATTR_STORE_PATH: path}) as span:
            size = measure_size(path)
            if span is not None:
                span.set_attribute(ATTR_SOURCE_SIZE, size)
        logger.debug("Measured %s: %d bytes", path, size)
        return size


__all__ = [
    "SizeProbe",
    "DirectorySizeProbe",
    "measure_size",
]
