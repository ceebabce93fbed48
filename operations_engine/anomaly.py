"""Rule-based anomaly detection over bucketed series.

Each rule is an independent function returning zero or more ``Anomaly``
objects. ``detect_anomalies`` runs them in a fixed order:

1. aging backlog
2. backlog volume
3. entity volume spikes (entities in sorted key order)
4. system volume spike
5. system completion-rate drop
6. entity completion-rate drops
7. cost spike
8. duration outliers
9. sustained recurrence

The combined list is stably sorted by severity and cut to
``config.max_anomalies``, so the lowest-severity, latest-evaluated items
are the first to go.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Iterable, Optional

import numpy as np

from operations_engine.bucketing import complete_buckets, utcnow
from operations_engine.config import AnomalyConfig
from operations_engine.schema import SEVERITY_RANK, Anomaly, Bucket, EventRecord, Severity

logger = logging.getLogger(__name__)


def _baseline(buckets: list[Bucket], metric: str, baseline_buckets: int) -> Optional[tuple[float, float]]:
    """Return (newest complete value, mean of the preceding buckets) or ``None``."""

    complete = complete_buckets(buckets)
    if len(complete) < 3:
        return None
    prior = complete[-(baseline_buckets + 1):-1]
    recent = complete[-1].metrics.get(metric, 0.0)
    return recent, sum(b.metrics.get(metric, 0.0) for b in prior) / len(prior)


def _completion_rate(bucket: Bucket) -> Optional[float]:
    """Resolved/created ratio, or ``None`` for a bucket with nothing created."""

    created = bucket.metrics.get("count", 0)
    if not created:
        return None
    return bucket.metrics.get("resolved_count", 0) / created


def _age_days(record: EventRecord, now: datetime) -> int:
    if record.scheduled_at is not None and record.scheduled_at < now:
        return (now - record.scheduled_at).days
    if record.occurred_at is not None:
        return (now - record.occurred_at).days
    return 0


def _examples(records: list[EventRecord], limit: int = 3) -> str:
    names = [r.entity_key or r.title or r.id for r in records[:limit]]
    return ", ".join(names) + ("..." if len(records) > limit else "")


def aging_backlog(backlog: Iterable[EventRecord], config: AnomalyConfig, now: datetime) -> list[Anomaly]:
    """Open high-priority records older than ``backlog_days``."""

    aged = [
        record
        for record in backlog
        if record.is_open
        and record.priority in config.backlog_priorities
        and _age_days(record, now) > config.backlog_days
    ]
    if not aged:
        return []
    return [
        Anomaly(
            title=f"{len(aged)} urgent/high tasks overdue >{config.backlog_days} days",
            description=f"Critical tasks left unresolved. Properties: {_examples(aged)}",
            severity=Severity.HIGH,
            navigation_hint="maintenance",
            rule="aging_backlog",
        )
    ]


def backlog_volume(backlog: Iterable[EventRecord], config: AnomalyConfig, now: datetime) -> list[Anomaly]:
    """Total overdue open records above ``backlog_volume_threshold``."""

    overdue = [
        record
        for record in backlog
        if record.is_open
        and (
            (record.scheduled_at is not None and record.scheduled_at < now)
            or (record.scheduled_at is None and _age_days(record, now) > config.backlog_days)
        )
    ]
    if len(overdue) <= config.backlog_volume_threshold:
        return []
    return [
        Anomaly(
            title=f"{len(overdue)} total overdue tasks",
            description="Task backlog is growing. Consider a batch cleanup or reassignment.",
            severity=Severity.MEDIUM,
            navigation_hint="maintenance",
            rule="backlog_volume",
        )
    ]


def volume_spike(
    buckets: list[Bucket],
    config: AnomalyConfig,
    entity_key: Optional[str] = None,
) -> list[Anomaly]:
    """Newest complete bucket count above a multiple of the trailing mean.

    Entity-level spikes use ``spike_multiplier`` and are ``high``; the
    system-wide series uses ``system_spike_multiplier`` and is ``medium``.
    """

    found = _baseline(buckets, "count", config.baseline_buckets)
    if found is None:
        return []
    recent, mean = found
    multiplier = config.spike_multiplier if entity_key else config.system_spike_multiplier
    if mean <= config.min_volume_baseline or recent <= mean * multiplier:
        return []

    increase = round((recent / mean) * 100 - 100)
    if entity_key:
        return [
            Anomaly(
                title=f"Task volume spike at {entity_key}",
                description=f"{int(recent)} tasks vs {round(mean)} avg. {increase}% increase.",
                severity=Severity.HIGH,
                entity_key=entity_key,
                navigation_hint=f"properties/{entity_key}",
                rule="volume_spike",
            )
        ]
    return [
        Anomaly(
            title="Task volume spike this period",
            description=f"{int(recent)} tasks vs {round(mean)} avg. {increase}% increase.",
            severity=Severity.MEDIUM,
            navigation_hint="trends",
            rule="volume_spike",
        )
    ]


def completion_drop(
    buckets: list[Bucket],
    config: AnomalyConfig,
    entity_key: Optional[str] = None,
) -> list[Anomaly]:
    """Resolved/created ratio of the newest complete bucket well under its recent mean.

    Buckets with nothing created have no rate: an empty newest bucket skips
    the rule and empty prior buckets are left out of the mean.
    """

    complete = complete_buckets(buckets)
    if len(complete) < 3:
        return []
    recent_rate = _completion_rate(complete[-1])
    prior_rates = [
        rate
        for rate in (_completion_rate(b) for b in complete[-(config.baseline_buckets + 1):-1])
        if rate is not None
    ]
    if recent_rate is None or not prior_rates:
        return []
    prior_rate = sum(prior_rates) / len(prior_rates)
    ratio = config.entity_completion_drop_ratio if entity_key else config.completion_drop_ratio

    if prior_rate <= config.min_completion_baseline or recent_rate >= prior_rate * ratio:
        return []

    where = f" at {entity_key}" if entity_key else ""
    return [
        Anomaly(
            title=f"Completion rate dropped{where}",
            description=(
                f"{round(recent_rate * 100)}% this period vs {round(prior_rate * 100)}% prior avg. "
                "Investigate bottlenecks."
            ),
            severity=Severity.HIGH,
            entity_key=entity_key,
            navigation_hint=f"properties/{entity_key}" if entity_key else "trends",
            rule="completion_drop",
        )
    ]


def cost_spike(buckets: list[Bucket], config: AnomalyConfig) -> list[Anomaly]:
    """Summed spend spike, ignored while the baseline is below ``min_cost_baseline``."""

    found = _baseline(buckets, "value_sum", config.baseline_buckets)
    if found is None:
        return []
    recent, mean = found
    if mean <= config.min_cost_baseline or recent <= mean * config.cost_spike_multiplier:
        return []
    return [
        Anomaly(
            title=f"Cost spike: ${recent:,.0f}",
            description=f"{round((recent / mean) * 100 - 100)}% over the trailing average of ${mean:,.0f}.",
            severity=Severity.HIGH,
            navigation_hint="spend",
            rule="cost_spike",
        )
    ]


def duration_outliers(records: Iterable[EventRecord], config: AnomalyConfig) -> list[Anomaly]:
    """Per entity, durations beyond ``duration_sigma`` standard deviations of the mean."""

    by_entity: dict[str, list[float]] = defaultdict(list)
    for record in records:
        if record.entity_key and record.numeric_value is not None:
            by_entity[record.entity_key].append(record.numeric_value)

    anomalies: list[Anomaly] = []
    for entity_key, durations in sorted(by_entity.items()):
        values = np.asarray(durations, dtype=float)
        mean = float(values.mean())
        std = float(values.std())
        if std == 0:
            continue
        outliers = int(np.sum(np.abs(values - mean) > config.duration_sigma * std))
        if outliers:
            anomalies.append(
                Anomaly(
                    title=f"Unusual task durations at {entity_key}",
                    description=(
                        f"{outliers} durations are {config.duration_sigma:g}+ standard deviations "
                        f"from mean ({round(mean)}±{round(std)}min)"
                    ),
                    severity=Severity.MEDIUM,
                    entity_key=entity_key,
                    navigation_hint=f"properties/{entity_key}",
                    rule="duration_outliers",
                )
            )
    return anomalies


def sustained_recurrence(per_entity_series: dict[str, list[Bucket]], config: AnomalyConfig) -> list[Anomaly]:
    """Entities busy in every one of the last ``recurrence_buckets`` complete buckets."""

    anomalies: list[Anomaly] = []
    for entity_key, buckets in sorted(per_entity_series.items()):
        recent = complete_buckets(buckets)[-config.recurrence_buckets:]
        if len(recent) < config.recurrence_buckets:
            continue
        if all(b.metrics.get("count", 0) >= config.recurrence_min_count for b in recent):
            counts = ", ".join(str(int(b.metrics.get("count", 0))) for b in recent)
            anomalies.append(
                Anomaly(
                    title=f"Sustained activity at {entity_key}",
                    description=f"{config.recurrence_min_count}+ tasks in each of the last {len(recent)} periods ({counts}).",
                    severity=Severity.LOW,
                    entity_key=entity_key,
                    navigation_hint=f"properties/{entity_key}",
                    rule="sustained_recurrence",
                )
            )
    return anomalies


def detect_anomalies(
    series: list[Bucket],
    per_entity_series: Optional[dict[str, list[Bucket]]] = None,
    config: Optional[AnomalyConfig] = None,
    *,
    cost_series: Optional[list[Bucket]] = None,
    backlog: Optional[Iterable[EventRecord]] = None,
    durations: Optional[Iterable[EventRecord]] = None,
    now: Optional[datetime] = None,
) -> list[Anomaly]:
    """Run every rule in order and return the severity-sorted, capped list."""

    config = config or AnomalyConfig()
    per_entity_series = per_entity_series or {}
    now = now or utcnow()
    backlog = list(backlog or [])

    found: list[Anomaly] = []
    found += aging_backlog(backlog, config, now)
    found += backlog_volume(backlog, config, now)
    for entity_key, buckets in sorted(per_entity_series.items()):
        found += volume_spike(buckets, config, entity_key=entity_key)
    found += volume_spike(series, config)
    found += completion_drop(series, config)
    for entity_key, buckets in sorted(per_entity_series.items()):
        found += completion_drop(buckets, config, entity_key=entity_key)
    if cost_series is not None:
        found += cost_spike(cost_series, config)
    if durations is not None:
        found += duration_outliers(durations, config)
    found += sustained_recurrence(per_entity_series, config)

    ordered = sorted(found, key=lambda anomaly: SEVERITY_RANK[anomaly.severity])
    if len(ordered) > config.max_anomalies:
        logger.debug("detect_anomalies: %d found, keeping %d", len(ordered), config.max_anomalies)
    return ordered[: config.max_anomalies]
