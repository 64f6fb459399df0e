"""Shared pytest fixtures for building NDJSON telemetry files."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Union

import pytest

from loadmerge.logging import set_global_log_level

Record = Union[Dict[str, Any], str]


@pytest.fixture(autouse=True)
def _restore_log_level():
    """Tests that change the package log level must not leak it."""
    yield
    set_global_log_level(logging.INFO)


@pytest.fixture
def write_ndjson(tmp_path: Path) -> Callable[[str, Iterable[Record]], Path]:
    """Return a factory writing records (dicts or raw lines) to a file."""

    def _write(name: str, records: Iterable[Record]) -> Path:
        path = tmp_path / name
        lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def point() -> Callable[..., Dict[str, Any]]:
    """Return a factory for load-generator ``Point`` lines."""

    def _point(
        metric: str, value: Any, time: str = "2024-01-01T00:00:00Z", **tags: Any
    ) -> Dict[str, Any]:
        return {
            "type": "Point",
            "metric": metric,
            "data": {"time": time, "value": value, "tags": tags},
        }

    return _point


@pytest.fixture
def scenario_a_records(point) -> List[Dict[str, Any]]:
    """Four requests (three 200s, one 500) and two durations (120, 80 ms)."""
    records: List[Dict[str, Any]] = []
    for i, (status, failed) in enumerate(
        [("200", 0), ("200", 0), ("200", 0), ("500", 1)]
    ):
        ts = f"2024-01-01T00:00:0{i}Z"
        records.append(point("http_reqs", 1, ts, status=status, method="GET"))
        records.append(
            point(
                "http_req_failed",
                failed,
                ts,
                status=status,
                method="GET",
                url="https://api.example.com/orders",
            )
        )
    records.append(point("http_req_duration", 120, "2024-01-01T00:00:00Z"))
    records.append(point("http_req_duration", 80, "2024-01-01T00:00:03Z"))
    return records


@pytest.fixture
def scenario_c_records(point) -> List[Dict[str, Any]]:
    """Four ``login successful`` checks: three pass, one fails."""
    return [
        point("checks", value, f"2024-01-01T00:01:0{i}Z", check="login successful")
        for i, value in enumerate([1, 1, 0, 1])
    ]
