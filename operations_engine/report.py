"""End-to-end report over a normalized record snapshot."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import asdict
from datetime import datetime
from typing import Optional

from operations_engine.anomaly import detect_anomalies
from operations_engine.bucketing import bucketize, bucketize_by_entity, utcnow
from operations_engine.cleanup import classify_open_tasks, entity_signals
from operations_engine.config import EngineConfig
from operations_engine.delta import compare_buckets, compute_delta, prior_window
from operations_engine.forecast import forecast_buckets
from operations_engine.schema import EventRecord, Granularity, Window
from operations_engine.scoring import band, property_health, property_stats, rank_scores, score

logger = logging.getLogger(__name__)

COST_CATEGORY = "cost"
DURATION_CATEGORY = "housekeeping"


def _avg_resolution_hours(records: list[EventRecord], window: Window) -> Optional[float]:
    hours = [
        (r.resolved_at - r.occurred_at).total_seconds() / 3600.0
        for r in records
        if r.resolved_at is not None and r.occurred_at is not None and window.contains(r.resolved_at)
    ]
    return sum(hours) / len(hours) if hours else None


def _delta_payload(delta) -> dict:
    payload = asdict(delta)
    payload["direction"] = delta.direction.value
    return payload


def build_report(
    records: list[EventRecord],
    window: Window,
    now: Optional[datetime] = None,
    config: Optional[EngineConfig] = None,
) -> dict:
    """Compose every component into one plain-dict report.

    Property health is scored from records created inside ``window``.
    """

    config = config or EngineConfig()
    now = now or utcnow()

    tasks = [r for r in records if r.category not in (COST_CATEGORY, "review")]
    costs = [r for r in records if r.category == COST_CATEGORY]
    logger.info("Building report over %d tasks and %d cost lines", len(tasks), len(costs))

    monthly = bucketize(tasks, Granularity.MONTH, window, "occurred_at", now)
    weekly = bucketize(tasks, Granularity.WEEK, window, "occurred_at", now)
    weekly_by_entity = bucketize_by_entity(tasks, Granularity.WEEK, window, "occurred_at", now)
    monthly_cost = bucketize(costs, Granularity.MONTH, window, "occurred_at", now)

    prior = prior_window(window)
    current_days = bucketize(tasks, Granularity.DAY, window, "occurred_at", now)
    prior_days = bucketize(tasks, Granularity.DAY, prior, "occurred_at", now)
    current_resolved = bucketize(tasks, Granularity.DAY, window, "resolved_at", now)
    prior_resolved = bucketize(tasks, Granularity.DAY, prior, "resolved_at", now)
    current_cost = bucketize(costs, Granularity.DAY, window, "occurred_at", now)
    prior_cost = bucketize(costs, Granularity.DAY, prior, "occurred_at", now)

    deltas = {}
    if len(current_days) == len(prior_days) and len(current_resolved) == len(prior_resolved):
        deltas["created"] = _delta_payload(compare_buckets(current_days, prior_days, "count"))
        deltas["resolved"] = _delta_payload(compare_buckets(current_resolved, prior_resolved, "count"))
        deltas["spend"] = _delta_payload(compare_buckets(current_cost, prior_cost, "value_sum"))
        current_hours = _avg_resolution_hours(tasks, window)
        prior_hours = _avg_resolution_hours(tasks, prior)
        if current_hours is not None and prior_hours is not None:
            deltas["avg_resolution_hours"] = _delta_payload(compute_delta(current_hours, prior_hours, invert=True))
    else:
        logger.debug("Current and prior day buckets differ in length; skipping period deltas")

    anomalies = detect_anomalies(
        weekly,
        weekly_by_entity,
        config.anomaly,
        cost_series=monthly_cost,
        backlog=[r for r in tasks if r.is_open],
        durations=[r for r in tasks if r.category == DURATION_CATEGORY and r.resolved_at is not None],
        now=now,
    )

    spend_forecast = forecast_buckets(
        monthly_cost,
        "value_sum",
        horizon=config.forecast.horizon,
        window=config.forecast.window,
        mode=config.forecast.mode,
        band_ratio=config.forecast.band_ratio,
    )

    signals = entity_signals(tasks, now, config.scoring.stale_days)
    entity_scores = rank_scores(
        score(values, config.scoring.weights, entity_key=entity, baseline=config.scoring.baseline)
        for entity, values in signals.items()
    )
    in_window = [r for r in records if r.occurred_at is not None and window.contains(r.occurred_at)]
    health = rank_scores(property_health(stats) for stats in property_stats(in_window).values())
    queue = classify_open_tasks(tasks, now, config.scoring.stale_days)

    return {
        "window": {"start": window.start.isoformat(), "end": window.end.isoformat()},
        "prior_window": {"start": prior.start.isoformat(), "end": prior.end.isoformat()},
        "monthly": [
            {"label": b.label, "is_partial": b.is_partial, "metrics": dict(b.metrics)} for b in monthly
        ],
        "deltas": deltas,
        "anomalies": [
            {**asdict(a), "severity": a.severity.value} for a in anomalies
        ],
        "spend_forecast": [asdict(point) for point in spend_forecast],
        "entity_scores": [
            {"entity_key": s.entity_key, "score": s.score, "band": band(s.score).value, "signals": s.contributing_signals}
            for s in entity_scores
        ],
        "property_health": [
            {"entity_key": s.entity_key, "score": s.score, "band": band(s.score).value, "factors": s.contributing_signals}
            for s in health
        ],
        "cleanup_queue": dict(Counter(item.category for item in queue)),
    }
