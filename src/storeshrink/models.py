"""
Data models for relocation runs.

- ShrinkOutcome: How a run ended
- ShrinkProgress: Snapshot reported after every committed round
- ShrinkResult: Summary of a finished run
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ShrinkOutcome(Enum):
    """
    Terminal state of a relocation run.

    Both values are normal, non-error endings. Failures are reported by
    raising a StoreShrinkError subclass instead.
    """

    TARGET_REACHED = "target_reached"
    """The source measured at or below the ceiling."""

    SOURCE_DRAINED = "source_drained"
    """Every source entry was visited before the ceiling was met."""


@dataclass(frozen=True)
class ShrinkProgress:
    """
    Progress information reported after a committed round.

    Attributes:
        round_number: 1-based sequence number of the round
        entries_in_round: Entries relocated by this round
        entries_relocated: Entries relocated since the run started
        source_size: Source size in bytes measured after the round
        max_source_size: Ceiling for the source size
        initial_source_size: Source size measured before the first round
        entries_per_second: Relocation rate since the run started
        is_complete: Whether this is the last round of the run
    """

    round_number: int
    entries_in_round: int
    entries_relocated: int
    source_size: int
    max_source_size: int
    initial_source_size: int
    entries_per_second: float
    is_complete: bool

    @property
    def bytes_reclaimed(self) -> int:
        """Bytes freed in the source since the run started (never negative)."""
        return max(0, self.initial_source_size - self.source_size)

    @property
    def target_reached(self) -> bool:
        """True if the last probe met the ceiling."""
        return self.source_size <= self.max_source_size


@dataclass
class ShrinkResult:
    """
    Result of a finished relocation run.

    Attributes:
        outcome: How the run ended
        entries_relocated: Total entries moved from source to target
        rounds_committed: Rounds committed to both stores
        initial_source_size: Source size before the run
        final_source_size: Source size at the last probe
        max_source_size: Ceiling the run worked towards
        duration_seconds: Total time taken
        size_history: Every probe taken, starting with the initial one
    """

    outcome: ShrinkOutcome
    entries_relocated: int
    rounds_committed: int
    initial_source_size: int
    final_source_size: int
    max_source_size: int
    duration_seconds: float
    size_history: list[int] = field(default_factory=list)

    @property
    def reached_target(self) -> bool:
        """True if the run ended because the ceiling was met."""
        return self.outcome is ShrinkOutcome.TARGET_REACHED

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to dictionary for JSON serialization.

        Returns:
            Dictionary representation suitable for JSON.
        """
        return {
            "outcome": self.outcome.value,
            "entries_relocated": self.entries_relocated,
            "rounds_committed": self.rounds_committed,
            "initial_source_size": self.initial_source_size,
            "final_source_size": self.final_source_size,
            "max_source_size": self.max_source_size,
            "duration_seconds": self.duration_seconds,
            "size_history": list(self.size_history),
        }


__all__ = [
    "ShrinkOutcome",
    "ShrinkProgress",
    "ShrinkResult",
]
