"""In-memory aggregation of flow records keyed by (hour, destination, protocol)."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, Optional

from flowcount.records.domain_types import AggregatedRecord, AggregationKey, FlowRecord


class AggregationTable:
    """Mapping from :class:`AggregationKey` to running totals.

    Iteration order is unspecified; callers that need stable output sort it.
    """

    def __init__(self) -> None:
        self._records: Dict[AggregationKey, AggregatedRecord] = {}

    # ------------------------------------------------------------------ ingestion
    def merge(self, record: FlowRecord) -> AggregatedRecord:
        """Insert a new entry for ``record`` or add its counters in place."""
        key = record.key
        existing = self._records.get(key)
        if existing is None:
            existing = AggregatedRecord.from_flow(record)
            self._records[key] = existing
        else:
            existing.add(record)
        return existing

    def merge_all(self, records: Iterable[FlowRecord]) -> int:
        count = 0
        for record in records:
            self.merge(record)
            count += 1
        return count

    # ------------------------------------------------------------------ access
    def get(self, key: AggregationKey) -> Optional[AggregatedRecord]:
        return self._records.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[AggregatedRecord]:
        return iter(self._records.values())

    @property
    def total_packets(self) -> int:
        return sum(record.packets for record in self._records.values())

    @property
    def total_bytes(self) -> int:
        return sum(record.bytes for record in self._records.values())


__all__ = ["AggregationTable"]
