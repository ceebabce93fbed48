"""Composite health, penalty and technician scores."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from operations_engine.schema import Band, CompositeScore, EventRecord

GOOD_THRESHOLD = 80
WATCH_THRESHOLD = 40
TREND_THRESHOLD = 2

CLEAN_BENCHMARK_MINUTES = 120
LONG_CLEAN_MINUTES = 240


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def band(score: float) -> Band:
    """Map a score onto its display band: >=80 good, 40-79 watch, <40 critical."""

    if score >= GOOD_THRESHOLD:
        return Band.GOOD
    if score >= WATCH_THRESHOLD:
        return Band.WATCH
    return Band.CRITICAL


def score(
    signals: Mapping[str, float],
    weights: Mapping[str, float],
    entity_key: str = "",
    baseline: float = 100.0,
) -> CompositeScore:
    """Subtract weighted penalty signals from ``baseline`` and clamp to [0, 100].

    Raises:
        ValueError: If a signal has no weight or a weight is negative
    """

    missing = sorted(set(signals) - set(weights))
    if missing:
        raise ValueError(f"No weight for signals {missing}")
    negative = sorted(name for name, weight in weights.items() if weight < 0)
    if negative:
        raise ValueError(f"Negative weights for {negative}")

    penalty = sum(float(value) * weights[name] for name, value in signals.items())
    return CompositeScore(
        entity_key=entity_key,
        score=int(round(_clamp(baseline - penalty))),
        contributing_signals={name: float(value) for name, value in signals.items()},
    )


def rank_scores(scores: Iterable[CompositeScore]) -> list[CompositeScore]:
    """Worst first; ties broken by entity key."""

    return sorted(scores, key=lambda item: (item.score, item.entity_key))


def score_trend(current: float, prior: Optional[float], threshold: float = TREND_THRESHOLD) -> str:
    if prior is None:
        return "new"
    delta = current - prior
    if delta >= threshold:
        return "improving"
    if delta <= -threshold:
        return "worsening"
    return "stable"


def technician_score(
    avg_cleanliness: Optional[float],
    efficiency_pct: Optional[float],
    worker_type: str = "w2",
) -> int:
    """Blend a 1-5 cleanliness rating with timesheet efficiency.

    Contractors (``1099``) have no timesheets and are scored on
    cleanliness alone.
    """

    if worker_type == "1099":
        return int(round(avg_cleanliness / 5 * 100)) if avg_cleanliness is not None else 0
    clean = avg_cleanliness / 5 * 80 if avg_cleanliness is not None else 0.0
    efficiency = efficiency_pct / 100 * 20 if efficiency_pct is not None else 0.0
    return int(round(clean + efficiency))


@dataclass
class PropertyStats:
    property_name: str
    avg_clean_minutes: float = 0.0
    total_cleans: int = 0
    cleans_over_4hrs: int = 0
    maintenance_count: int = 0
    total_cost: float = 0.0
    total_tasks: int = 0
    guest_rating: Optional[float] = None


def property_stats(records: Iterable[EventRecord]) -> dict[str, PropertyStats]:
    """Derive per-property health inputs from normalized records.

    ``numeric_value`` is read by category: minutes for ``housekeeping``,
    money for ``cost`` and a 1-5 rating for ``review``.
    """

    stats: dict[str, PropertyStats] = {}
    clean_minutes: dict[str, list[float]] = {}
    ratings: dict[str, list[float]] = {}

    for record in records:
        if not record.entity_key:
            continue
        item = stats.setdefault(record.entity_key, PropertyStats(property_name=record.entity_key))
        if record.category == "cost":
            item.total_cost += record.numeric_value or 0.0
            continue
        if record.category == "review":
            if record.numeric_value is not None:
                ratings.setdefault(record.entity_key, []).append(record.numeric_value)
            continue

        item.total_tasks += 1
        if record.category == "maintenance":
            item.maintenance_count += 1
        elif record.category == "housekeeping" and record.resolved_at is not None:
            item.total_cleans += 1
            if record.numeric_value is not None:
                clean_minutes.setdefault(record.entity_key, []).append(record.numeric_value)
                if record.numeric_value > LONG_CLEAN_MINUTES:
                    item.cleans_over_4hrs += 1

    for name, minutes in clean_minutes.items():
        stats[name].avg_clean_minutes = sum(minutes) / len(minutes)
    for name, values in ratings.items():
        stats[name].guest_rating = sum(values) / len(values)
    return stats


def property_health(stats: PropertyStats) -> CompositeScore:
    """Average of clamped factor scores, each 0-100."""

    avg = stats.avg_clean_minutes
    factors = {
        "clean_time_efficiency": 100 - (avg - CLEAN_BENCHMARK_MINUTES) / 2 if avg > 0 else 50,
        "clean_consistency": (
            100 - stats.cleans_over_4hrs / max(1, stats.total_cleans) * 200 if stats.cleans_over_4hrs else 100
        ),
        "maintenance_frequency": 100 - stats.maintenance_count * 5,
        "task_completion_rate": stats.total_cleans / stats.total_tasks * 100 if stats.total_tasks else 50,
        "cost_efficiency": 100 - stats.total_cost / 50,
    }
    if stats.guest_rating is not None:
        factors["guest_rating"] = stats.guest_rating / 5 * 100

    rounded = {name: float(round(_clamp(value))) for name, value in factors.items()}
    overall = sum(rounded.values()) / len(rounded)
    return CompositeScore(
        entity_key=stats.property_name,
        score=int(round(_clamp(overall))),
        contributing_signals=rounded,
    )
