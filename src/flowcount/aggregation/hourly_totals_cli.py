"""CLI entry point for per-hour packet/byte totals by destination and protocol."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from flowcount.aggregation.aggregation_config import AggregationConfig
from flowcount.aggregation.hourly_totals_service import HourlyTotalsService, RunSummary
from flowcount.aggregation.streaming_strategy import COMMIT_SCOPES
from flowcount.records.errors import FlowCountError

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("-i", "--input", required=True, help="Flow export CSV to aggregate.")
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Directory for the per-hour YYYY-MM-DD-HH.csv files (default: current dir).",
    )
    parser.add_argument(
        "--lowmem",
        action="store_true",
        default=None,
        help="Slower, but use less RAM: stream hours to disk and merge them afterwards.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Optional YAML file with run settings; command-line flags take precedence.",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help="Rows per chunk when streaming the input CSV.",
    )
    parser.add_argument(
        "--commit-scope",
        choices=list(COMMIT_SCOPES),
        default=None,
        help=(
            "Which partition files the low-memory merge pass rewrites: every hourly file "
            "in the output dir, or only hours touched by this run."
        ),
    )
    parser.add_argument(
        "--log-every",
        type=int,
        default=None,
        help="Log progress after processing this many input rows (0 disables).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Verbosity for the CLI logger.",
    )
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )


def load_config(args: argparse.Namespace) -> AggregationConfig:
    config = AggregationConfig.from_yaml(args.config) if args.config else AggregationConfig()
    return config.with_overrides(
        output_dir=args.output,
        low_memory=args.lowmem,
        chunk_size=args.chunk_size,
        commit_scope=args.commit_scope,
        log_every=args.log_every,
    )


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)
    try:
        config = load_config(args)
    except (OSError, TypeError, ValueError) as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    service = HourlyTotalsService(config)
    try:
        summary = _run_with_progress(service, Path(args.input))
    except FlowCountError as exc:
        raise SystemExit(str(exc)) from exc

    logger.info(
        "Wrote %s hourly files to %s (%s strategy).",
        len(summary.buckets_written),
        summary.output_dir,
        summary.strategy,
    )


def _run_with_progress(service: HourlyTotalsService, input_path: Path) -> RunSummary:
    progress_console = Console(stderr=True)
    progress = Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        TextColumn("{task.completed:,} rows", justify="right"),
        TimeElapsedColumn(),
        console=progress_console,
        transient=True,
        disable=not progress_console.is_terminal,
    )
    with progress:
        task_id = progress.add_task(f"Reading {input_path.name}", total=None)
        return service.run(
            input_path, on_rows=lambda count: progress.advance(task_id, count)
        )


if __name__ == "__main__":
    main()
