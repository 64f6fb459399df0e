"""Per-metric statistics and percentile estimation."""

from loadmerge.stats.metric import PERCENTILES, MetricAccumulator, MetricStats
from loadmerge.stats.quantiles import QuantileHistogram

__all__ = [
    "PERCENTILES",
    "MetricAccumulator",
    "MetricStats",
    "QuantileHistogram",
]
