"""Flow record decoding and the aggregation key model."""

from .csv_codec import RowSource, open_compact_rows, open_input_rows, write_compact_rows
from .decoding import (
    ColumnIndex,
    CompactDecoder,
    RecordDecoder,
    bucket_id_from_timestamp,
    is_bucket_id,
    iter_compact_records,
    iter_flow_records,
    parse_compact_counter,
    parse_counter,
)
from .domain_types import COMPACT_COLUMNS, INPUT_COLUMNS, AggregatedRecord, AggregationKey, FlowRecord
from .errors import (
    FlowCountError,
    FlowIOError,
    MalformedCounter,
    MalformedRowError,
    MalformedTimestamp,
    MissingColumnsError,
    PartitionMismatchError,
    RecordDecodeError,
)

__all__ = [
    "AggregatedRecord",
    "AggregationKey",
    "COMPACT_COLUMNS",
    "ColumnIndex",
    "CompactDecoder",
    "FlowCountError",
    "FlowIOError",
    "FlowRecord",
    "INPUT_COLUMNS",
    "MalformedCounter",
    "MalformedRowError",
    "MalformedTimestamp",
    "MissingColumnsError",
    "PartitionMismatchError",
    "RecordDecodeError",
    "RecordDecoder",
    "RowSource",
    "bucket_id_from_timestamp",
    "is_bucket_id",
    "iter_compact_records",
    "iter_flow_records",
    "open_compact_rows",
    "open_input_rows",
    "parse_compact_counter",
    "parse_counter",
    "write_compact_rows",
]
