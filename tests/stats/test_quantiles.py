from __future__ import annotations

import math

import pytest

from loadmerge.stats.quantiles import QuantileHistogram


def _filled(values, **kwargs) -> QuantileHistogram:
    hist = QuantileHistogram(**kwargs)
    for v in values:
        hist.add(v)
    return hist


def test_empty_histogram_reports_zero() -> None:
    hist = QuantileHistogram()

    assert hist.count == 0
    assert hist.quantile(0.5) == 0.0
    assert hist.bucket_count == 0


def test_single_value_within_relative_accuracy() -> None:
    hist = _filled([250.0])

    for q in (0.0, 0.5, 0.99, 1.0):
        assert hist.quantile(q) == pytest.approx(250.0, rel=0.01)


def test_uniform_values_percentiles() -> None:
    hist = _filled(range(1, 1001))

    # rank floor(count * q) into the sorted values
    assert hist.quantile(0.5) == pytest.approx(501, rel=0.02)
    assert hist.quantile(0.9) == pytest.approx(901, rel=0.02)
    assert hist.quantile(0.99) == pytest.approx(991, rel=0.02)
    assert hist.quantile(1.0) == pytest.approx(1000, rel=0.02)


def test_negative_and_zero_values_are_ordered() -> None:
    hist = _filled([-5.0, 0.0, 5.0])

    assert hist.quantile(0.0) == pytest.approx(-5.0, rel=0.01)
    assert hist.quantile(0.5) == 0.0
    assert hist.quantile(1.0) == pytest.approx(5.0, rel=0.01)


def test_merge_matches_single_histogram() -> None:
    left = _filled(range(1, 501))
    right = _filled(range(501, 1001))
    whole = _filled(range(1, 1001))

    merged = left.merge(right)

    assert merged.count == 1000
    for q in (0.5, 0.9, 0.95, 0.99):
        assert merged.quantile(q) == whole.quantile(q)


def test_merge_is_commutative_and_pure() -> None:
    a = _filled([1.0, 10.0, 100.0])
    b = _filled([5.0, 50.0])

    ab = a.merge(b)
    ba = b.merge(a)

    assert ab.positive == ba.positive
    assert ab.count == ba.count == 5
    assert a.count == 3
    assert b.count == 2


def test_merge_rejects_different_accuracy() -> None:
    with pytest.raises(ValueError):
        QuantileHistogram(relative_accuracy=0.01).merge(
            QuantileHistogram(relative_accuracy=0.05)
        )


def test_bucket_count_is_bounded_and_keeps_upper_percentiles() -> None:
    values = [1.5**i for i in range(60)]
    hist = _filled(values, max_buckets=10)

    assert hist.bucket_count <= 10
    assert hist.count == 60
    assert hist.quantile(0.99) == pytest.approx(values[-1], rel=0.01)


@pytest.mark.parametrize("q", [-0.1, 1.1])
def test_quantile_out_of_range(q: float) -> None:
    with pytest.raises(ValueError):
        QuantileHistogram().quantile(q)


@pytest.mark.parametrize(
    "kwargs",
    [{"relative_accuracy": 0.0}, {"relative_accuracy": 1.0}, {"max_buckets": 0}],
)
def test_invalid_settings(kwargs) -> None:
    with pytest.raises(ValueError):
        QuantileHistogram(**kwargs)


@pytest.mark.parametrize("value", [1e308, 1.7e308, -1.7e308])
def test_values_near_float_limit_give_finite_quantiles(value: float) -> None:
    hist = _filled([value, value])

    estimate = hist.quantile(0.5)
    assert math.isfinite(estimate)
    assert estimate == pytest.approx(value, rel=0.02)
