"""
Library exceptions for the storeshrink package.

Exception Hierarchy:
    StoreShrinkError (base)
    +-- ConfigError
    +-- OpenError
    +-- SizeProbeError
    +-- IterationError
    +-- CommitError

Every error is terminal for the operation that raised it: nothing in the
package retries. Each class carries the process exit code the command line
tool uses when the error ends a run.
"""

from __future__ import annotations


class StoreShrinkError(Exception):
    """Base exception for storeshrink library."""

    exit_code: int = 1


class ConfigError(StoreShrinkError):
    """Raised when the run configuration is invalid. No work is performed."""

    exit_code = 2


class OpenError(StoreShrinkError):
    """Raised when a store cannot be opened."""

    exit_code = 3

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"Cannot open store at {path}: {message}")


class SizeProbeError(StoreShrinkError):
    """Raised when the on-disk size of a store cannot be measured."""

    exit_code = 4

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"Cannot measure size of {path}: {message}")


class IterationError(StoreShrinkError):
    """Raised when reading entries from a store fails mid-scan."""

    exit_code = 6

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"Iteration over store at {path} failed: {message}")


class CommitError(StoreShrinkError):
    """
    Raised when a write batch cannot be committed to a store.

    The store is left as if the batch never ran. Rounds committed before
    the failing one remain applied.

    Attributes:
        path: Root path of the store that rejected the batch
        role: Role of that store in the run ('source', 'target' or None
            when the commit happened outside a relocation run)
        round_number: 1-based round that failed (None outside a run)
        operation_count: Number of operations in the rejected batch
    """

    exit_code = 5

    def __init__(
        self,
        path: str,
        message: str,
        *,
        role: str | None = None,
        round_number: int | None = None,
        operation_count: int = 0,
    ) -> None:
        self.path = path
        self.role = role
        self.round_number = round_number
        self.operation_count = operation_count
        self.reason = message
        where = f"{role} store" if role else "store"
        round_info = f" in round {round_number}" if round_number is not None else ""
        super().__init__(
            f"Commit of {operation_count} operations to {where} at {path}"
            f"{round_info} failed: {message}"
        )

    def with_context(self, role: str, round_number: int) -> CommitError:
        """Return a copy of this error annotated with the run context."""
        return CommitError(
            self.path,
            self.reason,
            role=role,
            round_number=round_number,
            operation_count=self.operation_count,
        )


__all__ = [
    "StoreShrinkError",
    "ConfigError",
    "OpenError",
    "SizeProbeError",
    "IterationError",
    "CommitError",
]
