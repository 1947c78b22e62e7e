"""Turn raw CSV rows into flow records.

Two decode modes share the same key model:

* :class:`RecordDecoder` reads the upstream flow export. It derives the hour
  bucket from the raw timestamp and sums forward/backward counters, which
  may be written in scientific notation (``3e+05``).
* :class:`CompactDecoder` reads rows this package wrote itself (the
  per-hour partition schema), so every field is taken verbatim and counters
  are plain unsigned integers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Dict, Iterable, Iterator, Mapping, Optional, Sequence

from .domain_types import (
    BWD_BYTES_COLUMN,
    BWD_PACKETS_COLUMN,
    BYTES_COLUMN,
    COMPACT_COLUMNS,
    DESTINATION_IP_COLUMN,
    FWD_BYTES_COLUMN,
    FWD_PACKETS_COLUMN,
    INPUT_COLUMNS,
    PACKETS_COLUMN,
    PROTOCOL_NAME_COLUMN,
    TIMESTAMP_COLUMN,
    FlowRecord,
)
from .errors import MalformedCounter, MalformedRowError, MalformedTimestamp, MissingColumnsError

UINT64_MAX = 2**64 - 1

BUCKET_ID_FORMAT = "%Y-%m-%d-%H"

_TIMESTAMP_RE = re.compile(
    r"(?P<day>\d{1,2})/(?P<month>\d{2})/(?P<year>\d{4})"
    r"(?P<hour>\d{1,2}):(?P<minute>\d{2}):(?P<second>\d{2})",
    re.ASCII,
)
_DECIMAL_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)
_UNSIGNED_RE = re.compile(r"\d+", re.ASCII)
_BUCKET_ID_RE = re.compile(r"\d{4}-\d{2}-\d{2}-\d{2}", re.ASCII)


def bucket_id_from_timestamp(text: str, *, row_number: Optional[int] = None) -> str:
    """Truncate a ``D/MM/YYYYHH:MM:SS`` timestamp to its ``YYYY-MM-DD-HH`` bucket."""
    match = _TIMESTAMP_RE.fullmatch(text or "")
    if match is None:
        raise MalformedTimestamp(
            f"timestamp {text!r} does not match D/MM/YYYYHH:MM:SS", row_number=row_number
        )
    try:
        moment = datetime(
            int(match["year"]),
            int(match["month"]),
            int(match["day"]),
            int(match["hour"]),
            int(match["minute"]),
            int(match["second"]),
        )
    except ValueError as exc:
        raise MalformedTimestamp(
            f"timestamp {text!r} is out of range: {exc}", row_number=row_number
        ) from exc
    return moment.strftime(BUCKET_ID_FORMAT)


def is_bucket_id(text: str) -> bool:
    """Return True if ``text`` is a well-formed, real ``YYYY-MM-DD-HH`` hour."""
    if not _BUCKET_ID_RE.fullmatch(text):
        return False
    try:
        datetime.strptime(text, BUCKET_ID_FORMAT)
    except ValueError:
        return False
    return True


def parse_counter(text: str, *, row_number: Optional[int] = None) -> int:
    """Parse a decimal counter literal and round it half-to-even.

    Values are clamped into the unsigned 64-bit range.
    """
    token = text or ""
    if not _DECIMAL_RE.fullmatch(token):
        raise MalformedCounter(f"counter {text!r} is not a decimal numeral", row_number=row_number)
    try:
        value = Decimal(token).to_integral_value(rounding=ROUND_HALF_EVEN)
    except InvalidOperation as exc:
        raise MalformedCounter(
            f"counter {text!r} is not a decimal numeral", row_number=row_number
        ) from exc
    if value <= 0:
        return 0
    if value >= UINT64_MAX:
        return UINT64_MAX
    return int(value)


def parse_compact_counter(text: str, *, row_number: Optional[int] = None) -> int:
    """Parse a counter written by this package (plain unsigned integer)."""
    if not _UNSIGNED_RE.fullmatch(text or ""):
        raise MalformedCounter(
            f"counter {text!r} is not an unsigned integer", row_number=row_number
        )
    return int(text)


@dataclass(frozen=True)
class ColumnIndex:
    """Column name to position mapping built from a header row."""

    positions: Mapping[str, int]

    @classmethod
    def from_header(cls, header: Sequence[str]) -> "ColumnIndex":
        positions: Dict[str, int] = {}
        for idx, name in enumerate(header):
            positions[str(name).strip()] = idx
        return cls(positions=positions)

    def __contains__(self, name: object) -> bool:
        return name in self.positions

    def require(self, names: Iterable[str], *, source: Optional[str] = None) -> "ColumnIndex":
        missing = [name for name in names if name not in self.positions]
        if missing:
            raise MissingColumnsError(missing, source=source)
        return self

    def field(self, row: Sequence[str], name: str, *, row_number: Optional[int] = None) -> str:
        idx = self.positions[name]
        if idx >= len(row):
            raise MalformedRowError(
                f"expected a value for {name!r} at column {idx + 1}, row has {len(row)} fields",
                row_number=row_number,
            )
        return row[idx]


class RecordDecoder:
    """Decoder for the upstream flow export schema."""

    required_columns: Sequence[str] = INPUT_COLUMNS

    def __init__(self, columns: ColumnIndex, *, source: Optional[str] = None) -> None:
        self.columns = columns.require(self.required_columns, source=source)

    def decode(self, row: Sequence[str], *, row_number: Optional[int] = None) -> FlowRecord:
        field = self.columns.field
        bucket_id = bucket_id_from_timestamp(
            field(row, TIMESTAMP_COLUMN, row_number=row_number), row_number=row_number
        )
        packets = self._sum_counters(row, FWD_PACKETS_COLUMN, BWD_PACKETS_COLUMN, row_number)
        byte_count = self._sum_counters(row, FWD_BYTES_COLUMN, BWD_BYTES_COLUMN, row_number)
        return FlowRecord(
            bucket_id=bucket_id,
            destination_ip=field(row, DESTINATION_IP_COLUMN, row_number=row_number),
            protocol_name=field(row, PROTOCOL_NAME_COLUMN, row_number=row_number),
            packets=packets,
            bytes=byte_count,
        )

    def _sum_counters(
        self, row: Sequence[str], forward: str, backward: str, row_number: Optional[int]
    ) -> int:
        field = self.columns.field
        fwd = parse_counter(field(row, forward, row_number=row_number), row_number=row_number)
        bwd = parse_counter(field(row, backward, row_number=row_number), row_number=row_number)
        return fwd + bwd


class CompactDecoder(RecordDecoder):
    """Decoder for compact rows read back from partition files."""

    required_columns: Sequence[str] = COMPACT_COLUMNS

    def decode(self, row: Sequence[str], *, row_number: Optional[int] = None) -> FlowRecord:
        field = self.columns.field
        return FlowRecord(
            bucket_id=field(row, TIMESTAMP_COLUMN, row_number=row_number),
            destination_ip=field(row, DESTINATION_IP_COLUMN, row_number=row_number),
            protocol_name=field(row, PROTOCOL_NAME_COLUMN, row_number=row_number),
            packets=parse_compact_counter(
                field(row, PACKETS_COLUMN, row_number=row_number), row_number=row_number
            ),
            bytes=parse_compact_counter(
                field(row, BYTES_COLUMN, row_number=row_number), row_number=row_number
            ),
        )


def _iter_decoded(
    rows: Iterable[Sequence[str]], decoder: RecordDecoder
) -> Iterator[FlowRecord]:
    for row_number, row in enumerate(rows, start=1):
        yield decoder.decode(row, row_number=row_number)


def iter_flow_records(
    header: Sequence[str], rows: Iterable[Sequence[str]], *, source: Optional[str] = None
) -> Iterator[FlowRecord]:
    """Yield a record per input row; iteration ends when ``rows`` is exhausted."""
    decoder = RecordDecoder(ColumnIndex.from_header(header), source=source)
    return _iter_decoded(rows, decoder)


def iter_compact_records(
    header: Sequence[str], rows: Iterable[Sequence[str]], *, source: Optional[str] = None
) -> Iterator[FlowRecord]:
    """Yield a record per compact row; iteration ends when ``rows`` is exhausted."""
    decoder = CompactDecoder(ColumnIndex.from_header(header), source=source)
    return _iter_decoded(rows, decoder)


__all__ = [
    "BUCKET_ID_FORMAT",
    "ColumnIndex",
    "CompactDecoder",
    "RecordDecoder",
    "UINT64_MAX",
    "bucket_id_from_timestamp",
    "is_bucket_id",
    "iter_compact_records",
    "iter_flow_records",
    "parse_compact_counter",
    "parse_counter",
]
