"""Per-hour partition files and the per-run bucket tracker.

A partition file lives at ``<output_dir>/<bucket_id>.csv`` and uses the
compact schema. During a streaming run the same bucket may be flushed many
times: the first flush of a bucket truncates whatever a previous run left
behind, later flushes append. The duplicate keys this produces are folded
back together by :mod:`flowcount.aggregation.commit_pass`.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Set

from flowcount.records.csv_codec import write_compact_rows
from flowcount.records.domain_types import FlowRecord

from .aggregation_table import AggregationTable

logger = logging.getLogger(__name__)

PARTITION_SUFFIX = ".csv"


class PartitionStore:
    """Writes aggregation tables to per-bucket compact CSV files."""

    def __init__(self, output_dir: str | os.PathLike[str]) -> None:
        self.output_dir = Path(output_dir)

    def path_for(self, bucket_id: str) -> Path:
        return self.output_dir / f"{bucket_id}{PARTITION_SUFFIX}"

    def persist(self, bucket_id: str, table: AggregationTable, *, overwrite: bool) -> Path:
        """Write every entry of ``table`` as one compact row.

        ``overwrite`` truncates the file and writes a header first; otherwise
        rows are appended without a header. I/O failures propagate as
        :class:`~flowcount.records.errors.FlowIOError`.
        """
        path = self.path_for(bucket_id)
        written = write_compact_rows(
            path, (record.to_row() for record in table), overwrite=overwrite
        )
        logger.debug(
            "%s %s rows for bucket %s to %s",
            "Wrote" if overwrite else "Appended",
            written,
            bucket_id,
            path,
        )
        return path


class BucketTracker:
    """Streaming-run state: the active bucket, its table and the seen-set.

    One tracker belongs to exactly one run; nothing here is shared between
    runs or strategy instances.
    """

    def __init__(self, store: PartitionStore) -> None:
        self.store = store
        self.active_bucket: Optional[str] = None
        self.table = AggregationTable()
        self._seen: Set[str] = set()
        self.flush_count = 0
        self.append_count = 0

    # ------------------------------------------------------------------ state
    @property
    def is_empty(self) -> bool:
        """True until the first record of the run has been seen."""
        return self.active_bucket is None

    def is_other_bucket(self, record: FlowRecord) -> bool:
        return self.active_bucket != record.bucket_id

    def activate(self, record: FlowRecord) -> None:
        self.active_bucket = record.bucket_id

    def add(self, record: FlowRecord) -> None:
        self.table.merge(record)

    def has_seen(self, bucket_id: str) -> bool:
        return bucket_id in self._seen

    @property
    def seen_buckets(self) -> List[str]:
        return sorted(self._seen)

    # ------------------------------------------------------------------ flush
    def flush(self) -> Path:
        """Persist the active table and start a fresh one.

        The first flush of a bucket in this run overwrites any stale file;
        every later flush appends to it.
        """
        if self.active_bucket is None:
            raise RuntimeError("BucketTracker.flush() called before any bucket was active")
        bucket_id = self.active_bucket
        first_time = bucket_id not in self._seen
        path = self.store.persist(bucket_id, self.table, overwrite=first_time)
        if first_time:
            self._seen.add(bucket_id)
        else:
            self.append_count += 1
        self.flush_count += 1
        self.table = AggregationTable()
        return path


__all__ = ["BucketTracker", "PARTITION_SUFFIX", "PartitionStore"]
