"""The merge run's output document.

`Summary` is an immutable dataclass built once from the fully merged
:class:`~loadmerge.merge.state.MergeState` by :func:`build_summary`.
:meth:`Summary.to_dict` produces the JSON document consumed by the report
renderer, with top-level sections ``metadata``, ``summary``,
``performance``, ``checks``, ``errors`` and ``metrics``.

Derived figures:

- ``total_requests`` is the larger of the request counter's sample count
  and the number of responses seen by the error classifier. Both streams
  carry one sample per request; taking the larger keeps
  ``total_errors <= total_requests`` when one stream is incomplete.
- ``error_rate`` is ``total_errors / total_requests`` (0 without requests).
- ``requests_per_second`` divides by the observed time range; events with no
  timestamp do not contribute to that range.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

from loadmerge.checks import CheckResult
from loadmerge.config import DEFAULT_CONFIG, MergeConfig
from loadmerge.errors.classifier import ErrorRecord, format_timestamp
from loadmerge.stats.metric import MetricStats, clamp_finite
from loadmerge.types import (
    DATA_RECEIVED_METRIC,
    DATA_SENT_METRIC,
    DURATION_METRIC,
    ITERATION_DURATION_METRIC,
    ITERATIONS_METRIC,
    REQUESTS_METRIC,
)

if TYPE_CHECKING:
    from loadmerge.merge.state import MergeState

_BYTE_UNITS = ("B", "KB", "MB", "GB")


def format_bytes(num_bytes: float) -> str:
    """Return a human readable byte size (``"1.5 KB"``).

    Uses powers of 1024 and at most two decimals, trimming trailing zeros.
    """
    num_bytes = clamp_finite(num_bytes)
    if num_bytes <= 0:
        return "0 B"
    exponent = int(math.floor(math.log(num_bytes) / math.log(1024)))
    exponent = max(0, min(exponent, len(_BYTE_UNITS) - 1))
    scaled = f"{num_bytes / 1024**exponent:.2f}".rstrip("0").rstrip(".")
    return f"{scaled} {_BYTE_UNITS[exponent]}"


def _percent(part: int, whole: int) -> str:
    return f"{part / whole * 100:.1f}" if whole > 0 else "0.0"


@dataclass(frozen=True)
class ErrorTypeCount:
    """Number of failures in one category."""

    type: str
    count: int
    percentage: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "count": self.count, "percentage": self.percentage}


@dataclass(frozen=True)
class ThresholdResult:
    """Pass/fail evaluation of one threshold."""

    name: str
    condition: str
    value: str
    passed: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "condition": self.condition,
            "value": self.value,
            "status": "pass" if self.passed else "fail",
        }


@dataclass(frozen=True)
class Summary:
    """Immutable result of a merge run.

    Attributes:
        total_files: Number of input paths requested.
        processed_files: Number of files read to completion.
        skipped_files: Paths that could not be read.
        total_lines: All lines read.
        valid_lines: Lines that decoded as JSON.
        invalid_lines: Lines that failed to decode.
        unrecognized_lines: Valid lines with an unknown shape.
        merge_timestamp: Epoch seconds when the summary was built.
        test_start_time: Earliest event timestamp, if any.
        test_end_time: Latest event timestamp, if any.
        cancelled: Whether the run stopped early and the summary is partial.
        total_requests: Number of requests.
        total_errors: Number of failed requests.
        error_rate: ``total_errors / total_requests`` as a fraction.
        requests_per_second: Request throughput over the observed time range.
        test_duration_seconds: Length of the observed time range.
        total_iterations: Number of iteration samples.
        data_received_bytes: Sum of received bytes.
        data_sent_bytes: Sum of sent bytes.
        response_time: Statistics of ``http_req_duration`` (milliseconds).
        iteration_duration: Statistics of ``iteration_duration``.
        thresholds: Threshold evaluations.
        checks: Check results, worst success rate first.
        check_totals: Overall check pass/fail counts.
        errors_by_type: Failure counts per category, most frequent first.
        errors_by_status: Response counts per status code.
        error_samples: Most recent failures, oldest first.
        error_timeline: Failures per UTC minute (ISO minute -> count).
        metrics: Finalized statistics for every observed metric.
    """

    total_files: int
    processed_files: int
    skipped_files: Tuple[str, ...]
    total_lines: int
    valid_lines: int
    invalid_lines: int
    unrecognized_lines: int
    merge_timestamp: float
    test_start_time: Optional[float]
    test_end_time: Optional[float]
    cancelled: bool
    total_requests: int
    total_errors: int
    error_rate: float
    requests_per_second: float
    test_duration_seconds: float
    total_iterations: int
    data_received_bytes: float
    data_sent_bytes: float
    response_time: MetricStats
    iteration_duration: MetricStats
    thresholds: Tuple[ThresholdResult, ...] = ()
    checks: Tuple[CheckResult, ...] = ()
    check_totals: Mapping[str, Any] = field(default_factory=dict)
    errors_by_type: Tuple[ErrorTypeCount, ...] = ()
    errors_by_status: Mapping[str, int] = field(default_factory=dict)
    error_samples: Tuple[ErrorRecord, ...] = ()
    error_timeline: Mapping[str, int] = field(default_factory=dict)
    metrics: Mapping[str, MetricStats] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze the mapping fields as well
        for name in ("check_totals", "errors_by_status", "error_timeline", "metrics"):
            frozen = MappingProxyType(dict(getattr(self, name)))
            object.__setattr__(self, name, frozen)

    @property
    def total_checks(self) -> int:
        return sum(check.total for check in self.checks)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON document layout."""
        rt = self.response_time
        return {
            "metadata": {
                "totalFiles": self.total_files,
                "processedFiles": self.processed_files,
                "skippedFiles": list(self.skipped_files),
                "totalLines": self.total_lines,
                "validLines": self.valid_lines,
                "invalidLines": self.invalid_lines,
                "unrecognizedLines": self.unrecognized_lines,
                "mergeTimestamp": format_timestamp(self.merge_timestamp),
                "testStartTime": format_timestamp(self.test_start_time),
                "testEndTime": format_timestamp(self.test_end_time),
                "cancelled": self.cancelled,
            },
            "summary": {
                "totalRequests": self.total_requests,
                "totalErrors": self.total_errors,
                "errorRate": f"{self.error_rate * 100:.2f}%",
                "avgResponseTime": f"{rt.avg:.2f}ms",
                "p95ResponseTime": f"{rt.p95:.2f}ms",
                "p99ResponseTime": f"{rt.p99:.2f}ms",
                "requestsPerSecond": f"{self.requests_per_second:.2f}",
                "testDuration": f"{self.test_duration_seconds / 60:.1f} minutes",
                "totalIterations": self.total_iterations,
                "totalChecks": self.total_checks,
                "dataReceived": format_bytes(self.data_received_bytes),
                "dataSent": format_bytes(self.data_sent_bytes),
            },
            "performance": {
                "avg": f"{rt.avg:.2f}",
                "min": f"{rt.min:.2f}",
                "max": f"{rt.max:.2f}",
                "p50": f"{rt.p50:.2f}",
                "p90": f"{rt.p90:.2f}",
                "p95": f"{rt.p95:.2f}",
                "p99": f"{rt.p99:.2f}",
                "iterationDuration": {
                    "avg": f"{self.iteration_duration.avg:.2f}",
                    "p95": f"{self.iteration_duration.p95:.2f}",
                },
                "thresholdResults": [t.to_dict() for t in self.thresholds],
            },
            "checks": {
                "total": self.total_checks,
                "results": [c.to_dict() for c in self.checks],
                "summary": dict(self.check_totals),
            },
            "errors": {
                "total": self.total_errors,
                "byType": [e.to_dict() for e in self.errors_by_type],
                "byStatus": dict(self.errors_by_status),
                "samples": [s.to_dict() for s in self.error_samples],
                "timeline": dict(self.error_timeline),
            },
            "metrics": {name: stats.to_dict() for name, stats in self.metrics.items()},
        }


def _evaluate_thresholds(
    response_time: MetricStats, error_rate: float, config: MergeConfig
) -> Tuple[ThresholdResult, ...]:
    error_rate_percent = error_rate * 100
    return (
        ThresholdResult(
            name="http_req_duration p(95)",
            condition=f"< {config.p95_threshold_ms:g} ms",
            value=f"{response_time.p95:.2f} ms",
            passed=response_time.p95 < config.p95_threshold_ms,
        ),
        ThresholdResult(
            name="http_req_failed rate",
            condition=f"< {config.error_rate_threshold_percent:g}%",
            value=f"{error_rate_percent:.2f}%",
            passed=error_rate_percent < config.error_rate_threshold_percent,
        ),
    )


def build_summary(
    state: MergeState,
    total_files: int,
    config: MergeConfig = DEFAULT_CONFIG,
    merge_timestamp: Optional[float] = None,
) -> Summary:
    """Fold a fully merged state into a `Summary`.

    Args:
        state: Merged state of all processed files.
        total_files: Number of input paths requested.
        config: Thresholds and formatting settings.
        merge_timestamp: Build time in epoch seconds (defaults to now).

    Returns:
        Summary with every field finite, even for an empty state.
    """
    metrics = {name: acc.finalize() for name, acc in sorted(state.metrics.items())}
    empty = MetricStats()

    def stats(name: str) -> MetricStats:
        return metrics.get(name, empty)

    def total(name: str) -> float:
        acc = state.metrics.get(name)
        return clamp_finite(acc.total) if acc is not None else 0.0

    total_errors = state.errors.total
    total_requests = max(stats(REQUESTS_METRIC).count, state.errors.responses)
    error_rate = total_errors / total_requests if total_requests > 0 else 0.0

    duration = 0.0
    if state.start_time is not None and state.end_time is not None:
        duration = max(0.0, state.end_time - state.start_time)
    requests_per_second = total_requests / duration if duration > 0 else 0.0

    errors_by_type = tuple(
        ErrorTypeCount(type=label, count=count, percentage=_percent(count, total_errors))
        for label, count in state.errors.breakdown()
    )
    timeline = {
        format_timestamp(float(minute)): count
        for minute, count in sorted(state.errors.timeline.items())
    }
    response_time = stats(DURATION_METRIC)

    return Summary(
        total_files=total_files,
        processed_files=len(state.processed_files),
        skipped_files=tuple(state.skipped_files),
        total_lines=state.total_lines,
        valid_lines=state.valid_lines,
        invalid_lines=state.invalid_lines,
        unrecognized_lines=state.unrecognized_lines,
        merge_timestamp=time.time() if merge_timestamp is None else merge_timestamp,
        test_start_time=state.start_time,
        test_end_time=state.end_time,
        cancelled=state.cancelled,
        total_requests=total_requests,
        total_errors=total_errors,
        error_rate=error_rate,
        requests_per_second=requests_per_second,
        test_duration_seconds=duration,
        total_iterations=stats(ITERATIONS_METRIC).count,
        data_received_bytes=total(DATA_RECEIVED_METRIC),
        data_sent_bytes=total(DATA_SENT_METRIC),
        response_time=response_time,
        iteration_duration=stats(ITERATION_DURATION_METRIC),
        thresholds=_evaluate_thresholds(response_time, error_rate, config),
        checks=tuple(state.checks.finalize()),
        check_totals=state.checks.totals(),
        errors_by_type=errors_by_type,
        errors_by_status=dict(sorted(state.errors.by_status.items())),
        error_samples=tuple(state.errors.samples),
        error_timeline=timeline,
        metrics=metrics,
    )
