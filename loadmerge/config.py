"""Configuration for merge runs.

`MergeConfig` carries every tunable used by the ingestion, accumulation and
summary stages. Values can come from keyword arguments, a plain dictionary,
or a YAML document such as::

    workers: 4
    relative_accuracy: 0.005
    error_sample_capacity: 50
    p95_threshold_ms: 2000
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict

import yaml

from loadmerge.utils.yaml_utils import normalize_yaml_dict_keys


@dataclass(frozen=True)
class MergeConfig:
    """Tunables for one merge run."""

    # Bytes read per I/O call while streaming an input file
    chunk_size: int = 64 * 1024

    # Lines between progress log messages
    progress_interval: int = 100_000

    # Worker processes; 1 processes files serially in the calling process
    workers: int = 1

    # Relative error bound of percentile estimates
    relative_accuracy: float = 0.01

    # Upper bound on histogram buckets per metric
    max_buckets: int = 2048

    # Most recent failures kept for diagnostics
    error_sample_capacity: int = 20

    # URLs in error samples are cut to this many characters
    url_max_length: int = 100

    # Threshold evaluation
    p95_threshold_ms: float = 10_000.0
    error_rate_threshold_percent: float = 40.0

    def __post_init__(self) -> None:
        for name in (
            "chunk_size",
            "progress_interval",
            "workers",
            "max_buckets",
            "error_sample_capacity",
            "url_max_length",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        if not 0.0 < float(self.relative_accuracy) < 1.0:
            raise ValueError(
                f"relative_accuracy must be in (0, 1), got {self.relative_accuracy!r}"
            )
        if self.p95_threshold_ms < 0 or self.error_rate_threshold_percent < 0:
            raise ValueError("thresholds must be non-negative")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MergeConfig":
        """Build a config from a mapping, rejecting unknown keys.

        Args:
            data: Mapping of field names to values.

        Returns:
            MergeConfig with defaults for missing fields.

        Raises:
            ValueError: On unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        normalized = normalize_yaml_dict_keys(data)
        unknown = sorted(set(normalized) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        try:
            return cls(**normalized)
        except TypeError as exc:
            raise ValueError(f"Invalid configuration: {exc}") from exc

    @classmethod
    def from_yaml(cls, text: str) -> "MergeConfig":
        """Parse a YAML document into a config.

        An empty document yields the defaults.

        Raises:
            ValueError: If the YAML is malformed or not a mapping.
        """
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid configuration YAML: {exc}") from exc
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError("Configuration YAML must be a mapping")
        return cls.from_dict(data)

    @classmethod
    def load(cls, path: Path) -> "MergeConfig":
        """Read and parse a YAML config file."""
        return cls.from_yaml(Path(path).read_text(encoding="utf-8"))

    def with_overrides(self, **overrides: Any) -> "MergeConfig":
        """Return a copy with the given non-None fields replaced."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


# Global default instance
DEFAULT_CONFIG = MergeConfig()
