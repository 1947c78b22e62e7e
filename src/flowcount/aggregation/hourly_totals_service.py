"""Library API for computing hourly flow totals without invoking the CLI."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional

from flowcount.records.csv_codec import open_input_rows
from flowcount.records.decoding import iter_flow_records
from flowcount.records.domain_types import FlowRecord
from flowcount.records.errors import FlowIOError

from .aggregation_config import AggregationConfig
from .full_strategy import FullStrategy
from .partition_store import PartitionStore
from .results import StrategyResult
from .streaming_strategy import StreamingStrategy

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """Outcome of one hourly-totals run."""

    input_path: Path
    output_dir: Path
    strategy: str
    rows_read: int
    buckets_written: List[str] = field(default_factory=list)
    partitions_committed: List[str] = field(default_factory=list)
    flushes: int = 0
    appends: int = 0
    elapsed_seconds: float = 0.0


class HourlyTotalsService:
    """Runs the configured strategy over one flow export."""

    def __init__(self, config: AggregationConfig | None = None) -> None:
        self.config = config or AggregationConfig()

    def build_strategy(self, store: PartitionStore) -> FullStrategy | StreamingStrategy:
        if self.config.low_memory:
            return StreamingStrategy(store, commit_scope=self.config.commit_scope)
        return FullStrategy(store)

    def run(
        self,
        input_path: str | Path,
        *,
        on_rows: Optional[Callable[[int], None]] = None,
    ) -> RunSummary:
        """Aggregate ``input_path`` into ``<output_dir>/<bucket>.csv`` files.

        Decode and I/O errors abort the run and propagate to the caller.
        """
        source_path = Path(input_path)
        output_dir = Path(self.config.output_dir)
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FlowIOError(f"Unable to create output directory {output_dir}: {exc}") from exc

        store = PartitionStore(output_dir)
        strategy = self.build_strategy(store)
        logger.info(
            "Aggregating %s into %s with the %s strategy.",
            source_path,
            output_dir,
            strategy.name,
        )

        started = time.perf_counter()
        with open_input_rows(
            source_path, chunksize=self.config.chunk_size, on_rows=on_rows
        ) as source:
            records = iter_flow_records(source.header, source.rows, source=source.name)
            result = strategy.run(self._with_progress_log(records))
        elapsed = time.perf_counter() - started

        summary = _summary_from_result(result, source_path, output_dir, elapsed)
        logger.info(
            "Finished in %.2fs: %s rows, %s hour files written.",
            summary.elapsed_seconds,
            summary.rows_read,
            len(summary.buckets_written),
        )
        return summary

    def _with_progress_log(self, records: Iterable[FlowRecord]) -> Iterator[FlowRecord]:
        log_every = self.config.log_every
        count = 0
        for record in records:
            count += 1
            if log_every and count % log_every == 0:
                logger.info("Processed %s rows (current bucket %s)", count, record.bucket_id)
            yield record


def _summary_from_result(
    result: StrategyResult, input_path: Path, output_dir: Path, elapsed: float
) -> RunSummary:
    return RunSummary(
        input_path=input_path,
        output_dir=output_dir,
        strategy=result.strategy,
        rows_read=result.records_read,
        buckets_written=list(result.buckets_written),
        partitions_committed=list(result.partitions_committed),
        flushes=result.flushes,
        appends=result.appends,
        elapsed_seconds=elapsed,
    )


__all__ = ["HourlyTotalsService", "RunSummary"]
