"""Single-pass strategy that keeps every hour bucket in memory."""

from __future__ import annotations

import logging
from typing import Dict, Iterable

from flowcount.records.domain_types import FlowRecord

from .aggregation_table import AggregationTable
from .partition_store import PartitionStore
from .results import StrategyResult

logger = logging.getLogger(__name__)


class FullStrategy:
    """Aggregate the whole input in memory, then write each bucket once.

    Memory grows with the number of distinct keys across the entire input;
    in exchange the input is read once and nothing is read back.
    """

    name = "full"

    def __init__(self, store: PartitionStore) -> None:
        self.store = store

    def aggregate(self, records: Iterable[FlowRecord]) -> Dict[str, AggregationTable]:
        tables: Dict[str, AggregationTable] = {}
        for record in records:
            table = tables.get(record.bucket_id)
            if table is None:
                table = tables[record.bucket_id] = AggregationTable()
            table.merge(record)
        return tables

    def run(self, records: Iterable[FlowRecord]) -> StrategyResult:
        result = StrategyResult(strategy=self.name)

        def _counted() -> Iterable[FlowRecord]:
            for record in records:
                result.records_read += 1
                yield record

        tables = self.aggregate(_counted())
        logger.info(
            "Aggregated %s records into %s hour buckets (%s keys).",
            result.records_read,
            len(tables),
            sum(len(table) for table in tables.values()),
        )
        for bucket_id in sorted(tables):
            self.store.persist(bucket_id, tables[bucket_id], overwrite=True)
            result.buckets_written.append(bucket_id)
            result.flushes += 1
        return result


__all__ = ["FullStrategy"]
