"""Exceptions raised while decoding flow rows or maintaining partition files."""

from __future__ import annotations

from typing import Iterable, Optional


class FlowCountError(Exception):
    """Base class for every fatal error raised by the aggregation engine."""


class RecordDecodeError(FlowCountError, ValueError):
    """A row could not be turned into a flow record."""

    def __init__(self, message: str, *, row_number: Optional[int] = None) -> None:
        self.row_number = row_number
        if row_number is not None:
            message = f"row {row_number}: {message}"
        super().__init__(message)


class MalformedTimestamp(RecordDecodeError):
    """Timestamp text does not follow D/MM/YYYYHH:MM:SS."""


class MalformedCounter(RecordDecodeError):
    """Counter text is not a decimal numeral."""


class MalformedRowError(RecordDecodeError):
    """Row does not have as many fields as its header."""


class MissingColumnsError(RecordDecodeError):
    """Header lacks columns the decoder consumes."""

    def __init__(self, missing: Iterable[str], *, source: Optional[str] = None) -> None:
        self.missing = tuple(missing)
        where = f"{source} is" if source else "header is"
        super().__init__(f"{where} missing required columns: {', '.join(self.missing)}")


class PartitionMismatchError(FlowCountError, ValueError):
    """A partition file holds rows for a bucket other than the one in its name."""


class FlowIOError(FlowCountError, OSError):
    """Opening, reading or writing an input or partition file failed."""


__all__ = [
    "FlowCountError",
    "FlowIOError",
    "MalformedCounter",
    "MalformedRowError",
    "MalformedTimestamp",
    "MissingColumnsError",
    "PartitionMismatchError",
    "RecordDecodeError",
]
