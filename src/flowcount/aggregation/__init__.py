"""Hour-bucketed aggregation strategies and the partition commit pass."""

from .aggregation_config import AggregationConfig
from .aggregation_table import AggregationTable
from .commit_pass import commit_partitions, list_partition_files, merge_partition_file
from .full_strategy import FullStrategy
from .partition_store import BucketTracker, PartitionStore
from .results import StrategyResult
from .streaming_strategy import COMMIT_SCOPES, StreamingStrategy

__all__ = [
    "AggregationConfig",
    "AggregationTable",
    "BucketTracker",
    "COMMIT_SCOPES",
    "FullStrategy",
    "HourlyTotalsService",
    "PartitionStore",
    "RunSummary",
    "StrategyResult",
    "StreamingStrategy",
    "commit_partitions",
    "list_partition_files",
    "merge_partition_file",
]


def __getattr__(name):
    if name in {"HourlyTotalsService", "RunSummary"}:
        from .hourly_totals_service import HourlyTotalsService, RunSummary

        return {"HourlyTotalsService": HourlyTotalsService, "RunSummary": RunSummary}[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
