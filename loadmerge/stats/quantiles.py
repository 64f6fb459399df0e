"""Mergeable, bounded-memory percentile estimation.

`QuantileHistogram` stores observations as frequencies over logarithmically
spaced buckets instead of keeping the raw values. A value ``v > 0`` lands in
bucket ``ceil(log(v) / log(gamma))`` with ``gamma = (1 + a) / (1 - a)``, so
every bucket spans a constant relative width and the value reported for a
bucket is within relative error ``a`` of any value it holds.

Memory is bounded by the number of distinct buckets, which depends on the
dynamic range of the data rather than on how many values were observed. When
``max_buckets`` is exceeded the lowest buckets are folded together; this
keeps the upper percentiles (p90 and above) accurate at the cost of the
smallest values.

Merging two histograms adds bucket frequencies, which is commutative and
associative, so per-file histograms can be combined in any order.
"""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass, field
from typing import Dict, Iterator, Tuple

# Magnitudes below this are counted as zero
MIN_INDEXABLE_VALUE = 1e-9


def _collapse_lowest(buckets: Dict[int, int], max_buckets: int) -> None:
    excess = len(buckets) - max_buckets
    if excess <= 0:
        return
    keys = sorted(buckets)
    target = keys[excess]
    folded = sum(buckets.pop(k) for k in keys[:excess])
    buckets[target] += folded


@dataclass
class QuantileHistogram:
    """Log-bucketed frequency histogram with relative-error guarantees.

    Attributes:
        relative_accuracy: Relative error bound of reported quantiles.
        max_buckets: Maximum buckets kept per sign before folding.
        positive: Bucket index -> count for positive values.
        negative: Bucket index -> count for the magnitudes of negative values.
        zero_count: Values whose magnitude is below ``MIN_INDEXABLE_VALUE``.
        count: Total number of observations.
    """

    relative_accuracy: float = 0.01
    max_buckets: int = 2048
    positive: Dict[int, int] = field(default_factory=dict)
    negative: Dict[int, int] = field(default_factory=dict)
    zero_count: int = 0
    count: int = 0

    def __post_init__(self) -> None:
        if not 0.0 < self.relative_accuracy < 1.0:
            raise ValueError("relative_accuracy must be in (0, 1)")
        if self.max_buckets < 1:
            raise ValueError("max_buckets must be positive")
        self._gamma = (1.0 + self.relative_accuracy) / (1.0 - self.relative_accuracy)
        self._log_gamma = math.log(self._gamma)

    def _index(self, magnitude: float) -> int:
        return math.ceil(math.log(magnitude) / self._log_gamma)

    def _bucket_value(self, index: int) -> float:
        try:
            value = self._gamma**index * (2.0 / (self._gamma + 1.0))
        except OverflowError:
            # Top bucket of values near the float limit
            return sys.float_info.max
        return min(value, sys.float_info.max)

    def add(self, value: float) -> None:
        """Record one observation."""
        if value > MIN_INDEXABLE_VALUE:
            idx = self._index(value)
            self.positive[idx] = self.positive.get(idx, 0) + 1
            _collapse_lowest(self.positive, self.max_buckets)
        elif value < -MIN_INDEXABLE_VALUE:
            idx = self._index(-value)
            self.negative[idx] = self.negative.get(idx, 0) + 1
            _collapse_lowest(self.negative, self.max_buckets)
        else:
            self.zero_count += 1
        self.count += 1

    def merge(self, other: "QuantileHistogram") -> "QuantileHistogram":
        """Return a new histogram holding the observations of both.

        Raises:
            ValueError: If the histograms use different accuracies.
        """
        if not math.isclose(self.relative_accuracy, other.relative_accuracy):
            raise ValueError(
                "Cannot merge histograms with different relative accuracy: "
                f"{self.relative_accuracy} vs {other.relative_accuracy}"
            )
        max_buckets = max(self.max_buckets, other.max_buckets)
        positive = dict(self.positive)
        for idx, n in other.positive.items():
            positive[idx] = positive.get(idx, 0) + n
        negative = dict(self.negative)
        for idx, n in other.negative.items():
            negative[idx] = negative.get(idx, 0) + n
        _collapse_lowest(positive, max_buckets)
        _collapse_lowest(negative, max_buckets)
        return QuantileHistogram(
            relative_accuracy=self.relative_accuracy,
            max_buckets=max_buckets,
            positive=positive,
            negative=negative,
            zero_count=self.zero_count + other.zero_count,
            count=self.count + other.count,
        )

    def _ascending(self) -> Iterator[Tuple[float, int]]:
        for idx in sorted(self.negative, reverse=True):
            yield -self._bucket_value(idx), self.negative[idx]
        if self.zero_count:
            yield 0.0, self.zero_count
        for idx in sorted(self.positive):
            yield self._bucket_value(idx), self.positive[idx]

    def quantile(self, q: float) -> float:
        """Estimate the value at quantile ``q``.

        The rank used is ``floor(count * q)`` (0-based, clamped to the last
        observation), matching a lookup into the sorted values.

        Args:
            q: Quantile in [0, 1].

        Returns:
            Estimated value, or 0.0 when the histogram is empty.

        Raises:
            ValueError: If ``q`` is outside [0, 1].
        """
        if not 0.0 <= q <= 1.0:
            raise ValueError("Quantile must be between 0 and 1")
        if self.count == 0:
            return 0.0

        rank = min(math.floor(self.count * q), self.count - 1)
        cumulative = 0
        last = 0.0
        for value, n in self._ascending():
            cumulative += n
            last = value
            if cumulative > rank:
                return value
        return last

    @property
    def bucket_count(self) -> int:
        """Number of populated buckets, including the zero bucket."""
        return len(self.positive) + len(self.negative) + (1 if self.zero_count else 0)
