"""Core dataclasses shared across the flowcount packages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, Sequence

# Input columns consumed from the flow telemetry export.
TIMESTAMP_COLUMN = "Timestamp"
DESTINATION_IP_COLUMN = "Destination.IP"
PROTOCOL_NAME_COLUMN = "ProtocolName"
FWD_PACKETS_COLUMN = "Total.Fwd.Packets"
BWD_PACKETS_COLUMN = "Total.Backward.Packets"
FWD_BYTES_COLUMN = "Total.Length.of.Fwd.Packets"
BWD_BYTES_COLUMN = "Total.Length.of.Bwd.Packets"

# Compact schema columns; Timestamp carries the bucketID, not a raw timestamp.
PACKETS_COLUMN = "Packets"
BYTES_COLUMN = "Bytes"

INPUT_COLUMNS: Sequence[str] = (
    TIMESTAMP_COLUMN,
    DESTINATION_IP_COLUMN,
    PROTOCOL_NAME_COLUMN,
    FWD_PACKETS_COLUMN,
    BWD_PACKETS_COLUMN,
    FWD_BYTES_COLUMN,
    BWD_BYTES_COLUMN,
)

COMPACT_COLUMNS: Sequence[str] = (
    TIMESTAMP_COLUMN,
    DESTINATION_IP_COLUMN,
    PROTOCOL_NAME_COLUMN,
    PACKETS_COLUMN,
    BYTES_COLUMN,
)


class AggregationKey(NamedTuple):
    """Identity under which flow counters are summed."""

    bucket_id: str
    destination_ip: str
    protocol_name: str

    def __str__(self) -> str:
        return f"{self.bucket_id}-{self.destination_ip}-{self.protocol_name}"


@dataclass(frozen=True)
class FlowRecord:
    """One decoded input row (or one compact row read back from a partition)."""

    bucket_id: str
    destination_ip: str
    protocol_name: str
    packets: int
    bytes: int

    @property
    def key(self) -> AggregationKey:
        return AggregationKey(self.bucket_id, self.destination_ip, self.protocol_name)


@dataclass
class AggregatedRecord:
    """Running packet/byte totals for a single aggregation key."""

    bucket_id: str
    destination_ip: str
    protocol_name: str
    packets: int = 0
    bytes: int = 0

    @classmethod
    def from_flow(cls, record: FlowRecord) -> "AggregatedRecord":
        return cls(
            bucket_id=record.bucket_id,
            destination_ip=record.destination_ip,
            protocol_name=record.protocol_name,
            packets=record.packets,
            bytes=record.bytes,
        )

    @property
    def key(self) -> AggregationKey:
        return AggregationKey(self.bucket_id, self.destination_ip, self.protocol_name)

    def add(self, record: FlowRecord) -> None:
        """Accumulate the counters of a record sharing this key."""
        self.packets += record.packets
        self.bytes += record.bytes

    def to_row(self) -> list[str]:
        """Render the record in compact column order."""
        return [
            self.bucket_id,
            self.destination_ip,
            self.protocol_name,
            str(self.packets),
            str(self.bytes),
        ]


__all__ = [
    "AggregatedRecord",
    "AggregationKey",
    "BWD_BYTES_COLUMN",
    "BWD_PACKETS_COLUMN",
    "BYTES_COLUMN",
    "COMPACT_COLUMNS",
    "DESTINATION_IP_COLUMN",
    "FWD_BYTES_COLUMN",
    "FWD_PACKETS_COLUMN",
    "FlowRecord",
    "INPUT_COLUMNS",
    "PACKETS_COLUMN",
    "PROTOCOL_NAME_COLUMN",
    "TIMESTAMP_COLUMN",
]
