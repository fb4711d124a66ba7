"""
Run configuration for storeshrink.

``ShrinkConfig`` is the plain configuration record handed from the command
line to the runner. It is immutable and validates the mode rules up front,
so a bad configuration fails before any store is touched.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from storeshrink.exceptions import ConfigError

DEFAULT_BATCH_SIZE = 1000

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class ShrinkConfig(BaseModel):
    """
    Configuration for a stats or relocation run.

    Stats mode only needs ``source_dir``. Relocation mode also needs
    ``target_dir`` (different from the source and not nested inside it)
    and ``max_size >= 1``.

    Use ``ShrinkConfig.create`` to get a ``ConfigError`` instead of a
    pydantic ``ValidationError`` on bad input.

    Example:
        >>> config = ShrinkConfig.create(
        ...     source_dir="/data/source",
        ...     target_dir="/data/archive",
        ...     max_size=40_000,
        ... )
        >>> config.batch_size
        1000
    """

    model_config = ConfigDict(frozen=True)

    stats: bool = Field(
        default=False,
        description="Only report the size of the source store",
    )
    source_dir: Path = Field(
        ...,
        description="Root path of the source store",
    )
    target_dir: Path | None = Field(
        default=None,
        description="Root path of the target store (relocation mode)",
    )
    max_size: int | None = Field(
        default=None,
        description="Ceiling in bytes for the source store (relocation mode)",
    )
    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        ge=1,
        description="Entries per commit round",
    )
    sync: bool = Field(
        default=True,
        description="Commit every batch with durability required",
    )
    enable_tracing: bool = Field(
        default=True,
        description="Emit OpenTelemetry spans when OpenTelemetry is installed",
    )
    log_level: LogLevel = Field(
        default="WARNING",
        description="Threshold for log records written to stderr",
    )

    @model_validator(mode="after")
    def _check_mode(self) -> Self:
        if self.stats:
            return self
        if self.target_dir is None:
            raise ValueError("target directory is required unless running in stats mode")
        if self.max_size is None or self.max_size < 1:
            raise ValueError("MaxSize should be more than zero")
        source = self.source_dir.resolve()
        target = self.target_dir.resolve()
        if target == source:
            raise ValueError("source and target directories must differ")
        # the size probe walks the whole source root
        if target.is_relative_to(source):
            raise ValueError("target directory must not be inside the source directory")
        return self

    @classmethod
    def create(cls, **values: Any) -> ShrinkConfig:
        """
        Build a configuration, translating validation failures.

        Raises:
            ConfigError: If any value or mode rule is invalid
        """
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(_describe(e)) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return self.model_dump(mode="json")


def _describe(error: ValidationError) -> str:
    messages = []
    for detail in error.errors():
        message = str(detail["msg"]).removeprefix("Value error, ")
        location = ".".join(str(part) for part in detail.get("loc", ()))
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages)


__all__ = [
    "DEFAULT_BATCH_SIZE",
    "ShrinkConfig",
]
