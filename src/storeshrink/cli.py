"""
Command line entry point.

Usage:
    storeshrink --stat -s /data/source
    storeshrink -s /data/source -t /data/archive -m 40000
    storeshrink -s /data/source -t /data/archive -m 40000 -b 500 -v

Exit codes:
    0   success (stats printed, or relocation finished)
    1   any other storeshrink error
    2   invalid configuration or command line usage
    3   a store could not be opened
    4   the source size could not be measured
    5   a batch commit failed
    6   reading the source failed
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from storeshrink.config import DEFAULT_BATCH_SIZE, ShrinkConfig
from storeshrink.exceptions import StoreShrinkError
from storeshrink.models import ShrinkProgress
from storeshrink.runner import measure_store, relocate

_LOG_LEVELS = ["WARNING", "INFO", "DEBUG"]


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="storeshrink",
        description=(
            "Shrink a key-value store by relocating entries into a second store "
            "until the source fits under a size ceiling."
        ),
    )
    parser.add_argument(
        "-u",
        "--stat",
        action="store_true",
        help="Display stats of source storage and exit",
    )
    parser.add_argument(
        "-s",
        "--sourcedir",
        required=True,
        help="Path to source storage",
    )
    parser.add_argument(
        "-m",
        "--maxsize",
        type=int,
        help="Max size of source storage in bytes",
    )
    parser.add_argument(
        "-t",
        "--targetdir",
        help="Path to target storage",
    )
    parser.add_argument(
        "-b",
        "--batchsize",
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help=f"Batch size of moving (default: {DEFAULT_BATCH_SIZE})",
    )
    parser.add_argument(
        "--no-sync",
        action="store_true",
        help="Do not wait for each batch to reach disk before continuing",
    )
    parser.add_argument(
        "--no-tracing",
        action="store_true",
        help="Disable OpenTelemetry spans",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log output (-v info, -vv debug)",
    )
    return parser


def _print_progress(progress: ShrinkProgress) -> None:
    print(f"Size: {progress.source_size}, target size: {progress.max_source_size}", flush=True)


def main(argv: list[str] | None = None) -> int:
    """
    Run the command line tool.

    Args:
        argv: Arguments without the program name (defaults to sys.argv[1:])

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    try:
        config = ShrinkConfig.create(
            stats=args.stat,
            source_dir=args.sourcedir,
            target_dir=args.targetdir,
            max_size=args.maxsize,
            batch_size=args.batchsize,
            sync=not args.no_sync,
            enable_tracing=not args.no_tracing,
            log_level=_LOG_LEVELS[min(args.verbose, len(_LOG_LEVELS) - 1)],
        )
        logging.basicConfig(
            level=config.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )

        if config.stats:
            size = measure_store(config)
            print(f"Size {size}")
            return 0

        print(f"Config: {config.to_dict()}")
        result = asyncio.run(relocate(config, progress_callback=_print_progress))
    except StoreShrinkError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code

    print("DONE")
    print(
        f"Outcome: {result.outcome.value}, relocated {result.entries_relocated} entries "
        f"in {result.rounds_committed} rounds, source {result.initial_source_size} -> "
        f"{result.final_source_size} bytes"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
