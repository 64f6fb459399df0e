"""Accumulated state of one or more processed files.

A `MergeState` bundles every accumulator that ingestion feeds: per-metric
statistics, the error classifier, check counters, line counters and the
observed time range. Each input file gets its own state; states are then
folded with :meth:`MergeState.merge`, which is commutative and associative
for every exact count.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from loadmerge.checks import CheckTracker
from loadmerge.config import DEFAULT_CONFIG, MergeConfig
from loadmerge.errors.classifier import ErrorClassifier
from loadmerge.ingest.parser import EventParser
from loadmerge.stats.metric import MetricAccumulator
from loadmerge.types import CHECKS_METRIC, FAILED_METRIC, CheckSample, Event


def _min_opt(a: Optional[float], b: Optional[float]) -> Optional[float]:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


def _max_opt(a: Optional[float], b: Optional[float]) -> Optional[float]:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


@dataclass
class MergeState:
    """Accumulators for a set of processed files.

    Attributes:
        relative_accuracy: Histogram accuracy for new metric accumulators.
        max_buckets: Histogram bucket cap for new metric accumulators.
        metrics: Metric name -> accumulator.
        errors: Failure classifier.
        checks: Check counters.
        total_lines: Lines read, including blank and malformed ones.
        valid_lines: Lines that decoded as JSON.
        invalid_lines: Lines that failed to decode.
        unrecognized_lines: Valid lines that no shape matcher recognized.
        start_time: Earliest event timestamp (epoch seconds), if any.
        end_time: Latest event timestamp (epoch seconds), if any.
        processed_files: Files read to completion.
        skipped_files: Files that could not be read.
        cancelled: Whether ingestion stopped early on request.
    """

    relative_accuracy: float = 0.01
    max_buckets: int = 2048
    metrics: Dict[str, MetricAccumulator] = field(default_factory=dict)
    errors: ErrorClassifier = field(default_factory=ErrorClassifier)
    checks: CheckTracker = field(default_factory=CheckTracker)
    total_lines: int = 0
    valid_lines: int = 0
    invalid_lines: int = 0
    unrecognized_lines: int = 0
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    processed_files: List[str] = field(default_factory=list)
    skipped_files: List[str] = field(default_factory=list)
    cancelled: bool = False

    @classmethod
    def empty(cls, config: MergeConfig = DEFAULT_CONFIG) -> "MergeState":
        """Create an empty state using the accumulator settings of ``config``."""
        return cls(
            relative_accuracy=config.relative_accuracy,
            max_buckets=config.max_buckets,
            errors=ErrorClassifier(
                sample_capacity=config.error_sample_capacity,
                url_max_length=config.url_max_length,
            ),
        )

    def _metric(self, name: str) -> MetricAccumulator:
        acc = self.metrics.get(name)
        if acc is None:
            acc = self.metrics[name] = MetricAccumulator.create(
                name,
                relative_accuracy=self.relative_accuracy,
                max_buckets=self.max_buckets,
            )
        return acc

    def observe(self, event: Event) -> None:
        """Route one event to the accumulators it concerns."""
        if event.timestamp is not None:
            self.start_time = _min_opt(self.start_time, event.timestamp)
            self.end_time = _max_opt(self.end_time, event.timestamp)

        if isinstance(event, CheckSample):
            self.checks.record(event.name, event.passed)
            self._metric(CHECKS_METRIC).observe(1.0 if event.passed else 0.0)
            return

        acc = self._metric(event.name)
        if event.value is not None:
            acc.observe(event.value)
            if event.name == FAILED_METRIC:
                self.errors.record_response(event)
        if event.rate is not None:
            acc.add_rate(event.rate)

    def absorb_parser(self, parser: EventParser) -> None:
        """Add the line counters collected by ``parser``."""
        self.valid_lines += parser.valid_lines
        self.invalid_lines += parser.invalid_lines
        self.unrecognized_lines += parser.unrecognized_lines
        self.total_lines += (
            parser.valid_lines + parser.invalid_lines + parser.blank_lines
        )

    def merge(self, other: "MergeState") -> "MergeState":
        """Return a new state combining ``self`` and ``other``."""
        metrics: Dict[str, MetricAccumulator] = {}
        for name in sorted(set(self.metrics) | set(other.metrics)):
            mine = self.metrics.get(name)
            theirs = other.metrics.get(name)
            if mine is not None and theirs is not None:
                metrics[name] = mine.merge(theirs)
            else:
                metrics[name] = (mine or theirs).copy()

        return MergeState(
            relative_accuracy=self.relative_accuracy,
            max_buckets=max(self.max_buckets, other.max_buckets),
            metrics=metrics,
            errors=self.errors.merge(other.errors),
            checks=self.checks.merge(other.checks),
            total_lines=self.total_lines + other.total_lines,
            valid_lines=self.valid_lines + other.valid_lines,
            invalid_lines=self.invalid_lines + other.invalid_lines,
            unrecognized_lines=self.unrecognized_lines + other.unrecognized_lines,
            start_time=_min_opt(self.start_time, other.start_time),
            end_time=_max_opt(self.end_time, other.end_time),
            processed_files=[*self.processed_files, *other.processed_files],
            skipped_files=[*self.skipped_files, *other.skipped_files],
            cancelled=self.cancelled or other.cancelled,
        )
