"""Running statistics for one metric.

A `MetricAccumulator` is updated in place while a single file is streamed
and combined with others through :meth:`MetricAccumulator.merge`, which
returns a new accumulator and leaves both inputs untouched. Count, sum,
min, max and rate combine exactly; percentiles combine through
:class:`~loadmerge.stats.quantiles.QuantileHistogram`.
"""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from loadmerge.logging import get_logger
from loadmerge.stats.quantiles import QuantileHistogram

logger = get_logger(__name__)

PERCENTILES: Tuple[Tuple[str, float], ...] = (
    ("p50", 0.50),
    ("p90", 0.90),
    ("p95", 0.95),
    ("p99", 0.99),
)


def clamp_finite(value: float) -> float:
    """Clamp an overflowed sum into the float range (NaN becomes 0)."""
    if math.isnan(value):
        return 0.0
    return min(max(value, -sys.float_info.max), sys.float_info.max)


@dataclass(frozen=True)
class MetricStats:
    """Finalized statistics of one metric.

    Every field is a finite number; a metric with no observations reports
    zeros throughout.
    """

    count: int = 0
    rate: float = 0.0
    avg: float = 0.0
    min: float = 0.0
    max: float = 0.0
    p50: float = 0.0
    p90: float = 0.0
    p95: float = 0.0
    p99: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "count": self.count,
            "rate": self.rate,
            "avg": self.avg,
            "min": self.min,
            "max": self.max,
            "p50": self.p50,
            "p90": self.p90,
            "p95": self.p95,
            "p99": self.p99,
        }


@dataclass
class MetricAccumulator:
    """Count, sum, extremes, rate and percentile state for one metric.

    Attributes:
        name: Metric name.
        histogram: Percentile estimator.
        count: Number of observed values.
        total: Sum of observed values.
        min: Smallest observed value (``inf`` while empty).
        max: Largest observed value (``-inf`` while empty).
        rate: Sum of reported rate fields.
    """

    name: str
    histogram: QuantileHistogram = field(default_factory=QuantileHistogram)
    count: int = 0
    total: float = 0.0
    min: float = math.inf
    max: float = -math.inf
    rate: float = 0.0

    @classmethod
    def create(
        cls, name: str, relative_accuracy: float = 0.01, max_buckets: int = 2048
    ) -> "MetricAccumulator":
        """Create an empty accumulator with the given histogram settings."""
        return cls(
            name=name,
            histogram=QuantileHistogram(
                relative_accuracy=relative_accuracy, max_buckets=max_buckets
            ),
        )

    def observe(self, value: float) -> None:
        """Record one value."""
        self.count += 1
        self.total += value
        if value < self.min:
            self.min = value
        if value > self.max:
            self.max = value
        self.histogram.add(value)

    def add_rate(self, rate: float) -> None:
        """Accumulate a rate reported alongside a sample."""
        self.rate += rate

    def merge(self, other: "MetricAccumulator") -> "MetricAccumulator":
        """Return a new accumulator combining ``self`` and ``other``.

        Raises:
            ValueError: If the accumulators track different metrics.
        """
        if other.name != self.name:
            raise ValueError(
                f"Cannot merge metric '{other.name}' into metric '{self.name}'"
            )
        return MetricAccumulator(
            name=self.name,
            histogram=self.histogram.merge(other.histogram),
            count=self.count + other.count,
            total=self.total + other.total,
            min=min(self.min, other.min),
            max=max(self.max, other.max),
            rate=self.rate + other.rate,
        )

    def copy(self) -> "MetricAccumulator":
        """Return an independent copy."""
        empty = MetricAccumulator.create(
            self.name,
            relative_accuracy=self.histogram.relative_accuracy,
            max_buckets=self.histogram.max_buckets,
        )
        return self.merge(empty)

    def finalize(self) -> MetricStats:
        """Compute the final statistics.

        Sums that overflowed the float range are clamped and logged.
        """
        if not (math.isfinite(self.total) and math.isfinite(self.rate)):
            logger.warning(
                f"Sum of metric '{self.name}' overflowed; reporting clamped values"
            )
        rate = clamp_finite(self.rate)
        if self.count == 0:
            return MetricStats(rate=rate)

        def clamp(value: float) -> float:
            return min(max(value, self.min), self.max)

        percentiles = {
            key: clamp(self.histogram.quantile(q)) for key, q in PERCENTILES
        }
        return MetricStats(
            count=self.count,
            rate=rate,
            avg=clamp(clamp_finite(self.total) / self.count),
            min=self.min,
            max=self.max,
            **percentiles,
        )
