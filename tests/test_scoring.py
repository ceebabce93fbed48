from datetime import datetime

import pytest

from operations_engine.schema import Band, CompositeScore, EventRecord
from operations_engine.scoring import (
    PropertyStats,
    band,
    property_health,
    property_stats,
    rank_scores,
    score,
    score_trend,
    technician_score,
)

WEIGHTS = {"open_count": 2, "overdue_count": 3, "duplicate_count": 1, "ghost_count": 1}


def test_score_subtracts_weighted_penalties():
    result = score({"open_count": 3, "overdue_count": 2, "duplicate_count": 0, "ghost_count": 0}, WEIGHTS, "Harbor House")
    assert result.score == 88
    assert result.entity_key == "Harbor House"
    assert result.contributing_signals["overdue_count"] == 2.0
    assert band(result.score) is Band.GOOD


def test_score_is_clamped():
    assert score({"open_count": 500}, WEIGHTS).score == 0
    assert score({}, WEIGHTS).score == 100
    assert score({"open_count": 0}, WEIGHTS, baseline=150).score == 100


def test_score_is_monotonic_in_each_signal():
    base = {"open_count": 4, "overdue_count": 1, "duplicate_count": 2, "ghost_count": 1}
    for name in base:
        previous = 101
        for value in range(0, 40):
            current = score({**base, name: value}, WEIGHTS).score
            assert 0 <= current <= 100
            assert current <= previous
            previous = current


def test_missing_or_negative_weight_raises():
    with pytest.raises(ValueError):
        score({"open_count": 1, "stale_count": 2}, WEIGHTS)
    with pytest.raises(ValueError):
        score({"open_count": 1}, {"open_count": -2})


def test_band_boundaries():
    assert band(100) is Band.GOOD
    assert band(80) is Band.GOOD
    assert band(79) is Band.WATCH
    assert band(40) is Band.WATCH
    assert band(39) is Band.CRITICAL
    assert band(0) is Band.CRITICAL


def test_rank_scores_worst_first_with_key_tiebreak():
    ranked = rank_scores([CompositeScore("b", 50), CompositeScore("a", 50), CompositeScore("c", 10)])
    assert [s.entity_key for s in ranked] == ["c", "a", "b"]


def test_technician_score():
    assert technician_score(4.5, None, worker_type="1099") == 90
    assert technician_score(None, 80, worker_type="1099") == 0
    assert technician_score(4.5, 90) == 90
    assert technician_score(None, 50) == 10


def test_score_trend():
    assert score_trend(70, None) == "new"
    assert score_trend(72, 70) == "improving"
    assert score_trend(68, 70) == "worsening"
    assert score_trend(71, 70) == "stable"


def test_property_health_factors():
    stats = PropertyStats(
        property_name="Harbor House",
        avg_clean_minutes=150,
        total_cleans=4,
        cleans_over_4hrs=1,
        maintenance_count=2,
        total_cost=500,
        total_tasks=8,
    )
    result = property_health(stats)
    assert result.contributing_signals == {
        "clean_time_efficiency": 85.0,
        "clean_consistency": 50.0,
        "maintenance_frequency": 90.0,
        "task_completion_rate": 50.0,
        "cost_efficiency": 90.0,
    }
    assert result.score == 73

    stats.guest_rating = 4.5
    assert property_health(stats).score == 76


def test_property_health_without_data_is_neutral():
    result = property_health(PropertyStats(property_name="Empty"))
    assert result.contributing_signals["clean_time_efficiency"] == 50.0
    assert result.contributing_signals["task_completion_rate"] == 50.0
    assert 0 <= result.score <= 100


def test_property_stats_reads_values_by_category():
    day = datetime(2025, 1, 6, 9)
    records = [
        EventRecord("h1", "Cedar Loft", "housekeeping", day, day, numeric_value=100.0),
        EventRecord("h2", "Cedar Loft", "housekeeping", day, day, numeric_value=300.0),
        EventRecord("m1", "Cedar Loft", "maintenance", day),
        EventRecord("c1", "Cedar Loft", "cost", day, numeric_value=250.0),
        EventRecord("r1", "Cedar Loft", "review", day, numeric_value=4.0),
    ]
    stats = property_stats(records)["Cedar Loft"]
    assert stats.avg_clean_minutes == pytest.approx(200.0)
    assert stats.total_cleans == 2
    assert stats.cleans_over_4hrs == 1
    assert stats.maintenance_count == 1
    assert stats.total_tasks == 3
    assert stats.total_cost == pytest.approx(250.0)
    assert stats.guest_rating == pytest.approx(4.0)
