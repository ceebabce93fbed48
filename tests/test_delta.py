from datetime import datetime

import pytest

from operations_engine.delta import compare_buckets, compute_delta, prior_window
from operations_engine.schema import Bucket, Direction, Window


def test_identical_values_are_flat():
    for value in (0, 1, 42.5, -7, 1_000_000):
        delta = compute_delta(value, value)
        assert delta.direction is Direction.FLAT
        assert delta.value_delta == 0


def test_zero_prior_is_insufficient_baseline():
    delta = compute_delta(5, 0)
    assert delta.percent_delta is None
    assert delta.insufficient_baseline
    assert delta.direction is Direction.FLAT
    assert delta.value_delta == 5


def test_direction_respects_invert():
    up = compute_delta(110, 100)
    assert up.percent_delta == pytest.approx(10.0)
    assert up.direction is Direction.IMPROVING
    assert compute_delta(110, 100, invert=True).direction is Direction.DECLINING
    assert compute_delta(90, 100, invert=True).direction is Direction.IMPROVING
    assert compute_delta(90, 100).direction is Direction.DECLINING


def test_small_change_is_flat():
    assert compute_delta(102, 100).direction is Direction.FLAT
    assert compute_delta(97.5, 100, invert=True).direction is Direction.FLAT


def test_prior_window_has_same_duration():
    window = Window(datetime(2025, 3, 1), datetime(2025, 3, 31))
    prior = prior_window(window)
    assert prior.end == datetime(2025, 2, 28)
    assert prior.start == datetime(2025, 1, 29)
    assert prior.end - prior.start == window.end - window.start


def make_buckets(values, metric="count"):
    return [
        Bucket(label=str(i), start=datetime(2025, 1, i + 1), end=datetime(2025, 1, i + 2), metrics={metric: v})
        for i, v in enumerate(values)
    ]


def test_compare_buckets_sums_metric():
    delta = compare_buckets(make_buckets([5, 5]), make_buckets([4, 4]), "count")
    assert delta.current == 10
    assert delta.prior == 8
    assert delta.percent_delta == pytest.approx(25.0)


def test_compare_buckets_rejects_mismatched_shapes():
    with pytest.raises(ValueError):
        compare_buckets(make_buckets([1, 2, 3]), make_buckets([1, 2]))
