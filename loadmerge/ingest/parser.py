"""Normalization of raw NDJSON lines into canonical events.

The load generator (and the scripts wrapped around it) has written several
incompatible line shapes over time. Each shape is described by one
:class:`ShapeMatcher`; the parser tries them in order and the first that
recognizes a record decides how it is normalized.

Shapes handled by :data:`DEFAULT_MATCHERS`, in priority order:

- ``metric_data``: ``{"metric": "http_reqs", "data": {"value": 1, "tags": {...}}}``
- ``metric_value``: ``{"metric": "vus", "value": 10}``
- ``point``: ``{"type": "Point", "metric": "vus", "value": 10}``
- ``metric_declaration``: ``{"type": "Metric", "data": {"name": "vus", ...}}``
- ``bare_metric``: ``{"metric": "vus", "count": 3}``
- ``metric_like_keys``: ``{"http_reqs": 12, "vus": 4}``

Malformed JSON never escapes :meth:`EventParser.parse`; it is counted and
dropped.
"""

from __future__ import annotations

import json
import math
import re
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from loadmerge.types import (
    CHECKS_METRIC,
    CheckSample,
    Event,
    MetricSample,
    Tags,
)

MatchFunc = Callable[[Dict[str, Any]], Optional[List[Event]]]

# Substrings that mark a top-level key as metric-like in the fallback matcher
METRIC_KEY_HINTS: Tuple[str, ...] = ("http_req", "iteration", "vus", "data_")

UNNAMED_CHECK = "unnamed_check"

_ISO_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(?::\d{2})?)"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>Z|z|[+-]\d{2}:?\d{2})?$"
)


@dataclass(frozen=True)
class ShapeMatcher:
    """Named recognizer for one on-disk line shape.

    ``match`` returns None when the record does not have this shape, or a
    (possibly empty) list of events when it does.
    """

    name: str
    match: MatchFunc


def parse_timestamp(raw: Any) -> Optional[float]:
    """Convert a timestamp field to seconds since the epoch.

    Accepts ISO-8601 strings (``Z`` or numeric offsets, fractions of any
    length; naive values are taken as UTC) and epoch numbers in milliseconds.

    Returns:
        Epoch seconds, or None when the value cannot be interpreted.
    """
    number = _as_number(raw)
    if number is not None:
        return _representable(number / 1000.0)
    if not isinstance(raw, str):
        return None
    match = _ISO_RE.match(raw.strip())
    if match is None:
        return None
    text = match.group("base").replace(" ", "T")
    frac = match.group("frac")
    if frac:
        # datetime supports microseconds only; the tool writes nanoseconds
        text += "." + frac[:6].ljust(6, "0")
    tz = match.group("tz")
    if tz is None or tz in ("Z", "z"):
        text += "+00:00"
    elif ":" not in tz:
        text += f"{tz[:3]}:{tz[3:]}"
    else:
        text += tz
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return _representable(parsed.timestamp())
    except (OverflowError, ValueError):
        return None


def _representable(seconds: float) -> Optional[float]:
    # Epoch values outside the datetime range (e.g. nanoseconds) are unusable
    try:
        datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return seconds


def _as_number(raw: Any) -> Optional[float]:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    try:
        value = float(raw)
    except OverflowError:
        return None
    return value if math.isfinite(value) else None


def _is_truthy(raw: Any) -> bool:
    if raw is None or raw is False or raw == "":
        return False
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return raw != 0 and not (isinstance(raw, float) and math.isnan(raw))
    return True


def _metric_name(record: Dict[str, Any]) -> Optional[str]:
    name = record.get("metric")
    if isinstance(name, str) and name:
        return name
    return None


def _tag_str(raw: Any) -> str:
    if isinstance(raw, bool):
        return "true" if raw else "false"
    if isinstance(raw, float) and raw.is_integer():
        return str(int(raw))
    return str(raw)


def _extract_tags(record: Dict[str, Any]) -> Tags:
    data = record.get("data")
    raw_tags = None
    if isinstance(data, dict) and isinstance(data.get("tags"), dict):
        raw_tags = data["tags"]
    elif isinstance(record.get("tags"), dict):
        raw_tags = record["tags"]
    if not raw_tags:
        return {}
    return {str(k): _tag_str(v) for k, v in raw_tags.items() if v is not None}


def _extract_timestamp(record: Dict[str, Any]) -> Optional[float]:
    data = record.get("data")
    candidates = []
    if isinstance(data, dict):
        candidates.append(data.get("time"))
    candidates.append(record.get("time"))
    candidates.append(record.get("timestamp"))
    for raw in candidates:
        if not _is_truthy(raw):
            continue
        timestamp = parse_timestamp(raw)
        if timestamp is not None:
            return timestamp
    return None


def _extract_value(payload: Any) -> Optional[float]:
    if isinstance(payload, dict):
        if "value" in payload:
            return _as_number(payload["value"])
        if "count" in payload:
            return _as_number(payload["count"])
        return None
    return _as_number(payload)


def _normalize(sample: MetricSample) -> Event:
    if sample.name == CHECKS_METRIC and sample.value is not None:
        return CheckSample(
            name=sample.tags.get("check") or UNNAMED_CHECK,
            passed=sample.value == 1,
            timestamp=sample.timestamp,
            tags=sample.tags,
        )
    return sample


def _samples(name: str, payload: Any, record: Dict[str, Any]) -> List[Event]:
    value = _extract_value(payload)
    rate = _as_number(payload.get("rate")) if isinstance(payload, dict) else None
    if value is None and rate is None:
        return []
    sample = MetricSample(
        name=name,
        value=value,
        timestamp=_extract_timestamp(record),
        tags=_extract_tags(record),
        rate=rate,
    )
    return [_normalize(sample)]


def match_metric_data(record: Dict[str, Any]) -> Optional[List[Event]]:
    name = _metric_name(record)
    if name is None or not _is_truthy(record.get("data")):
        return None
    return _samples(name, record["data"], record)


def match_metric_value(record: Dict[str, Any]) -> Optional[List[Event]]:
    name = _metric_name(record)
    if name is None or "value" not in record:
        return None
    return _samples(name, {"value": record["value"]}, record)


def match_point(record: Dict[str, Any]) -> Optional[List[Event]]:
    name = _metric_name(record)
    if record.get("type") != "Point" or name is None:
        return None
    return _samples(name, record, record)


def match_metric_declaration(record: Dict[str, Any]) -> Optional[List[Event]]:
    if record.get("type") != "Metric":
        return None
    name = _metric_name(record)
    data = record.get("data")
    if name is None and isinstance(data, dict) and isinstance(data.get("name"), str):
        name = data["name"] or None
    if name is None:
        return []
    return _samples(name, record, record)


def match_bare_metric(record: Dict[str, Any]) -> Optional[List[Event]]:
    name = _metric_name(record)
    if name is None:
        return None
    return _samples(name, record, record)


def match_metric_like_keys(record: Dict[str, Any]) -> Optional[List[Event]]:
    events: List[Event] = []
    for key, raw in record.items():
        if not any(hint in key for hint in METRIC_KEY_HINTS):
            continue
        if _as_number(raw) is None:
            continue
        events.extend(_samples(key, {"value": raw}, record))
    return events or None


DEFAULT_MATCHERS: Tuple[ShapeMatcher, ...] = (
    ShapeMatcher("metric_data", match_metric_data),
    ShapeMatcher("metric_value", match_metric_value),
    ShapeMatcher("point", match_point),
    ShapeMatcher("metric_declaration", match_metric_declaration),
    ShapeMatcher("bare_metric", match_bare_metric),
    ShapeMatcher("metric_like_keys", match_metric_like_keys),
)


class EventParser:
    """Turns raw lines into events and keeps per-file line counters.

    Attributes:
        matchers: Ordered shape matchers; the first match wins.
        valid_lines: Lines that decoded as JSON.
        invalid_lines: Non-blank lines that failed to decode.
        blank_lines: Empty or whitespace-only lines.
        unrecognized_lines: Valid JSON that no matcher recognized.
        shape_counts: Number of lines recognized by each matcher name.
    """

    def __init__(self, matchers: Optional[Sequence[ShapeMatcher]] = None) -> None:
        self.matchers: Tuple[ShapeMatcher, ...] = tuple(
            DEFAULT_MATCHERS if matchers is None else matchers
        )
        self.valid_lines = 0
        self.invalid_lines = 0
        self.blank_lines = 0
        self.unrecognized_lines = 0
        self.shape_counts: Counter[str] = Counter()

    def parse(self, line: str) -> Optional[List[Event]]:
        """Parse one line.

        Returns:
            None for blank or malformed lines, otherwise the list of events
            the line normalizes to (empty when its shape is unknown).
        """
        if not line.strip():
            self.blank_lines += 1
            return None
        try:
            record = json.loads(line)
        except (ValueError, RecursionError):
            self.invalid_lines += 1
            return None
        self.valid_lines += 1

        shape, events = self.match(record)
        if shape is None:
            self.unrecognized_lines += 1
            return []
        self.shape_counts[shape] += 1
        return events

    def match(self, record: Any) -> Tuple[Optional[str], List[Event]]:
        """Run the matcher table over an already decoded record.

        Returns:
            Tuple of (matcher name or None, events).
        """
        if not isinstance(record, dict):
            return None, []
        for matcher in self.matchers:
            events = matcher.match(record)
            if events is not None:
                return matcher.name, events
        return None, []
