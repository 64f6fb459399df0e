"""Canonical event types and the failure taxonomy.

Every input line that survives parsing is normalized into one of the event
types below, whatever shape it had on disk.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Union

# Well-known metric names emitted by the load generator
REQUESTS_METRIC = "http_reqs"
FAILED_METRIC = "http_req_failed"
DURATION_METRIC = "http_req_duration"
ITERATIONS_METRIC = "iterations"
ITERATION_DURATION_METRIC = "iteration_duration"
CHECKS_METRIC = "checks"
DATA_RECEIVED_METRIC = "data_received"
DATA_SENT_METRIC = "data_sent"

Tags = Dict[str, str]


@dataclass(frozen=True)
class MetricSample:
    """One numeric observation of a named metric.

    Attributes:
        name: Metric name (e.g. ``http_req_duration``).
        value: Observed value, or None when the line carried only a rate or
            a metric declaration.
        timestamp: Seconds since the epoch, or None when the line had none.
        tags: String tags attached to the sample.
        rate: Optional rate field reported alongside the value.
    """

    name: str
    value: Optional[float]
    timestamp: Optional[float] = None
    tags: Tags = field(default_factory=dict)
    rate: Optional[float] = None


@dataclass(frozen=True)
class CheckSample:
    """Outcome of one named check."""

    name: str
    passed: bool
    timestamp: Optional[float] = None
    tags: Tags = field(default_factory=dict)


Event = Union[MetricSample, CheckSample]


class ErrorCategory(str, Enum):
    """Kinds of request failure, in classification priority order."""

    TIMEOUT = "timeout"
    REQUEST_TIMEOUT = "request_timeout"
    BAD_GATEWAY = "bad_gateway"
    SERVER_ERROR = "server_error"
    NOT_FOUND = "not_found"
    CLIENT_ERROR = "client_error"
    CONNECTION_FAILED = "connection_failed"
    UNEXPECTED_RESPONSE = "unexpected_response"
    OTHER = "other_error"

    def label(self, status: Optional[str] = None) -> str:
        """Return the label used in summaries.

        Status-derived categories carry the status code
        (``server_error_500``, ``not_found_404``); the rest use the bare value.
        """
        if self in (
            ErrorCategory.SERVER_ERROR,
            ErrorCategory.NOT_FOUND,
            ErrorCategory.CLIENT_ERROR,
        ) and status:
            return f"{self.value}_{status}"
        return self.value
