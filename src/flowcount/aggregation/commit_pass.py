"""Collapse duplicate keys in partition files left by the streaming strategy.

Each partition file is read back with the compact decoder into a fresh
:class:`AggregationTable` and rewritten in place. The pass only depends on
what is on disk, so running it again over the same files changes nothing.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

from flowcount.records.csv_codec import open_compact_rows
from flowcount.records.decoding import iter_compact_records, is_bucket_id
from flowcount.records.errors import FlowIOError, PartitionMismatchError

from .aggregation_table import AggregationTable
from .partition_store import PARTITION_SUFFIX, PartitionStore

logger = logging.getLogger(__name__)


def list_partition_files(output_dir: str | os.PathLike[str]) -> List[Path]:
    """Return ``<bucket_id>.csv`` files under ``output_dir`` sorted by name.

    Any other file, including ``*.csv`` files whose stem is not an hour
    bucket, does not belong to the partition set.
    """
    directory = Path(output_dir)
    if not directory.is_dir():
        return []
    try:
        candidates = sorted(directory.glob(f"*{PARTITION_SUFFIX}"))
    except OSError as exc:
        raise FlowIOError(f"Unable to list partition files in {directory}: {exc}") from exc

    partitions: List[Path] = []
    for path in candidates:
        if path.is_file() and is_bucket_id(path.stem):
            partitions.append(path)
        else:
            logger.warning("Ignoring %s: not an hourly partition file.", path.name)
    return partitions


def merge_partition_file(store: PartitionStore, bucket_id: str) -> AggregationTable:
    """Re-aggregate one partition file and overwrite it with unique keys."""
    path = store.path_for(bucket_id)
    table = AggregationTable()
    rows_read = 0
    with open_compact_rows(path) as source:
        if source.header:
            for record in iter_compact_records(source.header, source.rows, source=str(path)):
                if record.bucket_id != bucket_id:
                    raise PartitionMismatchError(
                        f"{path} contains a row for bucket {record.bucket_id!r}"
                    )
                table.merge(record)
                rows_read += 1
    store.persist(bucket_id, table, overwrite=True)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Committed %s: %s rows folded into %s keys.", path.name, rows_read, len(table)
        )
    return table


def commit_partitions(
    output_dir: str | os.PathLike[str],
    *,
    buckets: Optional[Iterable[str]] = None,
) -> List[str]:
    """Run the merge over every partition file, or only ``buckets`` when given.

    Returns the bucket IDs that were rewritten. A missing or empty directory
    is a no-op.
    """
    store = PartitionStore(output_dir)
    wanted = None if buckets is None else set(buckets)
    committed: List[str] = []
    for path in list_partition_files(output_dir):
        bucket_id = path.stem
        if wanted is not None and bucket_id not in wanted:
            logger.debug("Skipping %s: bucket not touched by this run.", path.name)
            continue
        merge_partition_file(store, bucket_id)
        committed.append(bucket_id)
    logger.info("Committed %s partition files in %s.", len(committed), output_dir)
    return committed


__all__ = ["commit_partitions", "list_partition_files", "merge_partition_file"]
