from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Dict, Mapping

import yaml

from .streaming_strategy import COMMIT_SCOPES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregationConfig:
    """Run settings for the hourly flow totals job.

    Example YAML::

        output_dir: out/hourly
        low_memory: true
        chunk_size: 50000
        commit_scope: touched
        log_every: 1000000
    """

    output_dir: str = "."
    low_memory: bool = False
    chunk_size: int = 100_000
    commit_scope: str = "all"
    log_every: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "output_dir", str(self.output_dir))
        self._validate()

    def _validate(self) -> None:
        if not self.output_dir.strip():
            raise ValueError("output_dir cannot be empty")
        if not isinstance(self.low_memory, bool):
            raise TypeError("low_memory must be a boolean")
        if isinstance(self.chunk_size, bool) or not isinstance(self.chunk_size, int):
            raise TypeError("chunk_size must be an integer")
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self.commit_scope not in COMMIT_SCOPES:
            raise ValueError(
                f"commit_scope must be one of {', '.join(COMMIT_SCOPES)}: {self.commit_scope!r}"
            )
        if isinstance(self.log_every, bool) or not isinstance(self.log_every, int):
            raise TypeError("log_every must be an integer")
        if self.log_every < 0:
            raise ValueError("log_every cannot be negative")

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "AggregationConfig":
        if not isinstance(data, Mapping):
            raise TypeError("Aggregation config must be a mapping")
        known = {f.name for f in fields(cls)}
        unknown = sorted(str(key) for key in data if key not in known)
        if unknown:
            raise ValueError(f"Unknown aggregation config keys: {', '.join(unknown)}")
        return cls(**{str(key): value for key, value in data.items()})

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AggregationConfig":
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Aggregation config YAML not found at {config_path}")
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, Mapping):
            raise TypeError("Aggregation config YAML must contain a mapping at the top level")
        config = cls.from_mapping(data)
        logger.debug("Loaded aggregation config from %s: %s", config_path, config)
        return config

    def to_yaml(self, path: str | Path) -> None:
        dest = Path(path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        with dest.open("w", encoding="utf-8") as handle:
            yaml.safe_dump(asdict(self), handle, sort_keys=True)

    def with_overrides(self, **overrides: object) -> "AggregationConfig":
        """Return a copy with every non-``None`` override applied."""
        changes: Dict[str, object] = {
            key: value for key, value in overrides.items() if value is not None
        }
        if not changes:
            return self
        return replace(self, **changes)


__all__ = ["AggregationConfig"]
