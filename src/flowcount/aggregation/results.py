"""Result containers returned by the aggregation strategies."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass
class StrategyResult:
    """What a strategy run left on disk."""

    strategy: str
    records_read: int = 0
    buckets_written: List[str] = field(default_factory=list)
    partitions_committed: List[str] = field(default_factory=list)
    flushes: int = 0
    appends: int = 0


__all__ = ["StrategyResult"]
