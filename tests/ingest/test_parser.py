from __future__ import annotations

import json

import pytest

from loadmerge.ingest.parser import (
    DEFAULT_MATCHERS,
    EventParser,
    ShapeMatcher,
    parse_timestamp,
)
from loadmerge.types import CheckSample, MetricSample

NEW_YEAR_2024 = 1704067200.0

# One line per recognized shape
SHAPE_FIXTURES = {
    "metric_data": {
        "type": "Point",
        "metric": "http_req_duration",
        "data": {
            "time": "2024-01-01T00:00:00Z",
            "value": 120.5,
            "tags": {"status": "200", "method": "GET"},
        },
    },
    "metric_value": {"metric": "vus", "value": 10, "timestamp": 1704067200000},
    "point": {"type": "Point", "metric": "iterations", "count": 1},
    "metric_declaration": {
        "type": "Metric",
        "data": {"name": "http_reqs", "type": "counter"},
    },
    "bare_metric": {"metric": "iterations", "count": 3},
    "metric_like_keys": {"http_reqs": 12, "vus": 4, "label": "run-7"},
}


def _parse(record) -> tuple:
    parser = EventParser()
    events = parser.parse(json.dumps(record))
    return parser, events


def test_default_matcher_order() -> None:
    assert [m.name for m in DEFAULT_MATCHERS] == list(SHAPE_FIXTURES)


@pytest.mark.parametrize("shape", list(SHAPE_FIXTURES))
def test_each_shape_is_recognized_by_its_matcher(shape: str) -> None:
    parser, events = _parse(SHAPE_FIXTURES[shape])

    assert events is not None
    assert parser.shape_counts == {shape: 1}
    assert parser.valid_lines == 1
    assert parser.unrecognized_lines == 0


def test_metric_data_shape_extracts_value_time_and_tags() -> None:
    _, events = _parse(SHAPE_FIXTURES["metric_data"])

    assert events == [
        MetricSample(
            name="http_req_duration",
            value=120.5,
            timestamp=NEW_YEAR_2024,
            tags={"status": "200", "method": "GET"},
        )
    ]


def test_metric_value_shape_reads_epoch_milliseconds() -> None:
    _, events = _parse(SHAPE_FIXTURES["metric_value"])

    assert events == [MetricSample(name="vus", value=10.0, timestamp=NEW_YEAR_2024)]


def test_point_shape_falls_back_to_count() -> None:
    _, events = _parse(SHAPE_FIXTURES["point"])

    assert events == [MetricSample(name="iterations", value=1.0)]


def test_metric_declaration_yields_no_events() -> None:
    _, events = _parse(SHAPE_FIXTURES["metric_declaration"])

    assert events == []


def test_bare_metric_shape() -> None:
    _, events = _parse(SHAPE_FIXTURES["bare_metric"])

    assert events == [MetricSample(name="iterations", value=3.0)]


def test_metric_like_keys_yield_one_event_per_numeric_key() -> None:
    _, events = _parse(SHAPE_FIXTURES["metric_like_keys"])

    assert events == [
        MetricSample(name="http_reqs", value=12.0),
        MetricSample(name="vus", value=4.0),
    ]


def test_rate_only_sample_keeps_rate() -> None:
    _, events = _parse({"metric": "http_req_failed", "data": {"rate": 0.25}})

    assert events == [MetricSample(name="http_req_failed", value=None, rate=0.25)]


def test_top_level_tags_are_used_when_data_has_none() -> None:
    _, events = _parse(
        {"metric": "http_reqs", "value": 1, "tags": {"status": 200, "ok": True, "x": None}}
    )

    assert events[0].tags == {"status": "200", "ok": "true"}


@pytest.mark.parametrize(
    "value, passed", [(1, True), (0, False), (0.5, False)]
)
def test_checks_become_check_samples(value, passed) -> None:
    _, events = _parse(
        {
            "metric": "checks",
            "data": {
                "time": "2024-01-01T00:00:00Z",
                "value": value,
                "tags": {"check": "login successful"},
            },
        }
    )

    assert events == [
        CheckSample(
            name="login successful",
            passed=passed,
            timestamp=NEW_YEAR_2024,
            tags={"check": "login successful"},
        )
    ]


def test_check_without_name_is_unnamed() -> None:
    _, events = _parse({"metric": "checks", "value": 1})

    assert isinstance(events[0], CheckSample)
    assert events[0].name == "unnamed_check"


def test_unknown_object_is_valid_but_unrecognized() -> None:
    parser, events = _parse({"message": "hello"})

    assert events == []
    assert parser.valid_lines == 1
    assert parser.unrecognized_lines == 1
    assert not parser.shape_counts


def test_non_object_json_is_unrecognized() -> None:
    parser = EventParser()

    assert parser.parse("[1, 2, 3]") == []
    assert parser.parse("42") == []
    assert parser.valid_lines == 2
    assert parser.unrecognized_lines == 2


@pytest.mark.parametrize("line", ["{bad json", '{"metric": "vus", "value": 1', "nan?"])
def test_malformed_lines_are_counted_and_dropped(line: str) -> None:
    parser = EventParser()

    assert parser.parse(line) is None
    assert parser.invalid_lines == 1
    assert parser.valid_lines == 0


def test_blank_lines_are_neither_valid_nor_invalid() -> None:
    parser = EventParser()

    assert parser.parse("") is None
    assert parser.parse("   \t") is None
    assert parser.blank_lines == 2
    assert parser.valid_lines == 0
    assert parser.invalid_lines == 0


def test_non_numeric_values_are_ignored() -> None:
    _, events = _parse({"metric": "vus", "value": "ten"})

    assert events == []


def test_custom_matcher_table() -> None:
    def match_event_field(record):
        if "event" not in record:
            return None
        return [MetricSample(name=record["event"], value=1.0)]

    parser = EventParser([ShapeMatcher("event_field", match_event_field)])

    assert parser.parse('{"event": "login"}') == [MetricSample(name="login", value=1.0)]
    assert parser.parse('{"metric": "vus", "value": 1}') == []
    assert parser.shape_counts == {"event_field": 1}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2024-01-01T00:00:00Z", NEW_YEAR_2024),
        ("2024-01-01T00:00:00", NEW_YEAR_2024),
        ("2024-01-01T01:00:00+01:00", NEW_YEAR_2024),
        ("2024-01-01T05:30:00+0530", NEW_YEAR_2024),
        ("2024-01-01T00:00:00.250000000Z", NEW_YEAR_2024 + 0.25),
        ("2024-01-01 00:00:00.5Z", NEW_YEAR_2024 + 0.5),
        (1704067200000, NEW_YEAR_2024),
        (1704067200500.0, NEW_YEAR_2024 + 0.5),
    ],
)
def test_parse_timestamp(raw, expected) -> None:
    assert parse_timestamp(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["yesterday", "2024-13-01T00:00:00Z", None, True, {}])
def test_parse_timestamp_rejects_garbage(raw) -> None:
    assert parse_timestamp(raw) is None


@pytest.mark.parametrize("raw", [1.7e18, 1e20, -1e20, 10**400])
def test_parse_timestamp_rejects_out_of_range_epochs(raw) -> None:
    # e.g. nanosecond epochs land far outside the datetime range
    assert parse_timestamp(raw) is None


def test_oversized_integer_value_is_dropped_without_error() -> None:
    parser = EventParser()

    assert parser.parse('{"metric": "vus", "value": 1' + "0" * 400 + "}") == []
    assert parser.invalid_lines == 0
    assert parser.shape_counts == {"metric_value": 1}


def test_oversized_integer_time_leaves_event_untimed() -> None:
    line = '{"metric": "vus", "value": 3, "time": 1' + "0" * 400 + "}"

    (event,) = EventParser().parse(line)

    assert event.value == 3.0
    assert event.timestamp is None


def test_unparseable_data_time_falls_back_to_top_level_time() -> None:
    _, events = _parse(
        {
            "metric": "http_reqs",
            "data": {"time": "not a time", "value": 1},
            "time": "2024-01-01T00:00:00Z",
        }
    )

    assert events[0].timestamp == NEW_YEAR_2024
