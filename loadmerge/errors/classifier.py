"""Failure taxonomy, status histogram and diagnostic samples.

`ErrorClassifier` consumes every sample of the request failure flag
(``http_req_failed``). Each sample is one response: all of them feed the
status-code histogram, and those flagged as failed (``value == 1``) are
assigned exactly one category by :func:`classify`.

The classifier's ``total`` is the single source of truth for the number of
errors; category counts always add up to it.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Tuple

from loadmerge.types import ErrorCategory, MetricSample, Tags

UNKNOWN_STATUS = "unknown"

# Error codes reported by the load generator's HTTP client
REQUEST_TIMEOUT_CODE = "1050"
BAD_GATEWAY_CODE = "1502"


def classify(tags: Tags) -> ErrorCategory:
    """Assign a failure category from a failed response's tags.

    Rules are evaluated in order: explicit timeout message, known error
    codes, HTTP status buckets, unexpected-response flag, fallback.
    """
    error = tags.get("error", "")
    error_code = tags.get("error_code")
    status = tags.get("status", "")

    if "timeout" in error:
        return ErrorCategory.TIMEOUT
    if error_code == REQUEST_TIMEOUT_CODE or error == "request timeout":
        return ErrorCategory.REQUEST_TIMEOUT
    if error_code == BAD_GATEWAY_CODE:
        return ErrorCategory.BAD_GATEWAY
    if len(status) == 3 and status.isdigit():
        if status.startswith("5"):
            return ErrorCategory.SERVER_ERROR
        if status == "404":
            return ErrorCategory.NOT_FOUND
        if status.startswith("4"):
            return ErrorCategory.CLIENT_ERROR
    if status == "0":
        return ErrorCategory.CONNECTION_FAILED
    if tags.get("expected_response") == "false":
        return ErrorCategory.UNEXPECTED_RESPONSE
    return ErrorCategory.OTHER


def category_label(tags: Tags) -> str:
    """Return the summary label for a failed response (e.g. ``server_error_500``)."""
    return classify(tags).label(tags.get("status"))


def minute_bucket(timestamp: float) -> int:
    """Return the epoch second at the start of the UTC minute of ``timestamp``."""
    return int(timestamp // 60) * 60


def format_timestamp(timestamp: Optional[float]) -> Optional[str]:
    """Format epoch seconds as an ISO-8601 UTC string, or None."""
    if timestamp is None:
        return None
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class ErrorRecord:
    """One failed response kept for diagnostics."""

    timestamp: Optional[float]
    category: str
    status: Optional[str]
    method: Optional[str]
    url: str
    error: Optional[str]
    error_code: Optional[str]
    tags: Tags = field(default_factory=dict)

    @classmethod
    def from_sample(
        cls, sample: MetricSample, category: str, url_max_length: int = 100
    ) -> "ErrorRecord":
        tags = sample.tags
        url = tags.get("url") or tags.get("name") or "unknown"
        return cls(
            timestamp=sample.timestamp,
            category=category,
            status=tags.get("status"),
            method=tags.get("method"),
            url=url[:url_max_length],
            error=tags.get("error"),
            error_code=tags.get("error_code"),
            tags=dict(tags),
        )

    def recency_key(self) -> Tuple[bool, float, str, str]:
        # Records without timestamps rank as oldest
        return (
            self.timestamp is not None,
            self.timestamp if self.timestamp is not None else 0.0,
            self.category,
            self.url,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": format_timestamp(self.timestamp),
            "type": self.category,
            "status": self.status,
            "method": self.method,
            "url": self.url,
            "error": self.error,
            "errorCode": self.error_code,
            "tags": dict(self.tags),
        }


@dataclass
class ErrorClassifier:
    """Error counters for one file or a merged set of files.

    Attributes:
        sample_capacity: Maximum number of records in ``samples``.
        url_max_length: URLs in records are cut to this length.
        total: Number of failed responses.
        responses: Number of responses seen (failed or not).
        by_category: Category label -> failure count.
        by_status: Status code -> response count, for every response.
        timeline: Start of UTC minute (epoch seconds) -> failure count.
        samples: Most recent failures, oldest first.
    """

    sample_capacity: int = 20
    url_max_length: int = 100
    total: int = 0
    responses: int = 0
    by_category: Dict[str, int] = field(default_factory=dict)
    by_status: Dict[str, int] = field(default_factory=dict)
    timeline: Dict[int, int] = field(default_factory=dict)
    samples: Deque[ErrorRecord] = field(default_factory=deque)

    def __post_init__(self) -> None:
        if self.sample_capacity < 1:
            raise ValueError("sample_capacity must be positive")
        self.samples = deque(self.samples, maxlen=self.sample_capacity)

    def record_response(self, sample: MetricSample) -> Optional[str]:
        """Record one failure-flag sample.

        Args:
            sample: A sample of the request failure metric.

        Returns:
            The category label when the sample is a failure, else None.
        """
        status = sample.tags.get("status") or UNKNOWN_STATUS
        self.by_status[status] = self.by_status.get(status, 0) + 1
        self.responses += 1

        if sample.value != 1:
            return None

        label = category_label(sample.tags)
        self.total += 1
        self.by_category[label] = self.by_category.get(label, 0) + 1
        if sample.timestamp is not None:
            minute = minute_bucket(sample.timestamp)
            self.timeline[minute] = self.timeline.get(minute, 0) + 1
        self.samples.append(
            ErrorRecord.from_sample(sample, label, self.url_max_length)
        )
        return label

    def merge(self, other: "ErrorClassifier") -> "ErrorClassifier":
        """Return a new classifier combining both.

        Counters add up; the sample buffer keeps the most recent records of
        the union.
        """

        def add(a: Dict[Any, int], b: Dict[Any, int]) -> Dict[Any, int]:
            combined = dict(a)
            for key, n in b.items():
                combined[key] = combined.get(key, 0) + n
            return combined

        capacity = max(self.sample_capacity, other.sample_capacity)
        records = sorted(
            [*self.samples, *other.samples], key=ErrorRecord.recency_key
        )
        return ErrorClassifier(
            sample_capacity=capacity,
            url_max_length=self.url_max_length,
            total=self.total + other.total,
            responses=self.responses + other.responses,
            by_category=add(self.by_category, other.by_category),
            by_status=add(self.by_status, other.by_status),
            timeline=add(self.timeline, other.timeline),
            samples=deque(records[-capacity:], maxlen=capacity),
        )

    def breakdown(self) -> List[Tuple[str, int]]:
        """Return (label, count) pairs, most frequent first."""
        return sorted(self.by_category.items(), key=lambda item: (-item[1], item[0]))
