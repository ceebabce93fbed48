"""Calendar-aligned period bucketing."""

from __future__ import annotations

import logging
from bisect import bisect_right
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from operations_engine.schema import Bucket, EventRecord, Granularity, Window

logger = logging.getLogger(__name__)

TIMESTAMP_FIELDS = ("occurred_at", "resolved_at", "scheduled_at")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _granularity(value) -> Granularity:
    try:
        return Granularity(value)
    except ValueError as exc:
        raise ValueError(f"Unknown granularity {value!r}, expected one of day/week/month") from exc


def _floor(moment: datetime, granularity: Granularity, week_start: int) -> datetime:
    day = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity is Granularity.DAY:
        return day
    if granularity is Granularity.WEEK:
        return day - timedelta(days=(day.weekday() - week_start) % 7)
    return day.replace(day=1)


def _advance(start: datetime, granularity: Granularity) -> datetime:
    if granularity is Granularity.DAY:
        return start + timedelta(days=1)
    if granularity is Granularity.WEEK:
        return start + timedelta(days=7)
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


def _label(start: datetime, granularity: Granularity) -> str:
    if granularity is Granularity.MONTH:
        return start.strftime("%Y-%m")
    return start.strftime("%Y-%m-%d")


def _aggregate(records: list[EventRecord]) -> dict[str, float]:
    values = [r.numeric_value for r in records if r.numeric_value is not None]
    resolution_hours = [
        (r.resolved_at - r.occurred_at).total_seconds() / 3600.0
        for r in records
        if r.resolved_at is not None and r.occurred_at is not None
    ]
    metrics: dict[str, float] = {
        "count": len(records),
        "value_sum": float(sum(values)),
        "value_count": len(values),
        "resolved_count": sum(1 for r in records if r.resolved_at is not None),
    }
    # Means are left out when nothing contributed to them.
    if values:
        metrics["value_mean"] = metrics["value_sum"] / len(values)
    if resolution_hours:
        metrics["avg_resolution_hours"] = sum(resolution_hours) / len(resolution_hours)
    return metrics


def bucketize(
    records: Iterable[EventRecord],
    granularity: Granularity | str,
    window: Window,
    timestamp_field: str = "occurred_at",
    now: Optional[datetime] = None,
    week_start: int = 0,
) -> list[Bucket]:
    """Group records into contiguous calendar buckets covering ``window``.

    Bucket boundaries are calendar-aligned and clipped to the window, so the
    first and last bucket can be shorter than a full period. A bucket whose
    calendar end lies after ``now`` is partial. A window reaching past
    ``now`` keeps its buckets up to ``window.end``: the bucket holding
    ``now`` and every later one are partial, so partial buckets only ever
    form the tail of the series. Forward-dated fields such as
    ``scheduled_at`` are counted there.

    Records with no value in ``timestamp_field`` are skipped here only.

    Raises:
        ValueError: On an unknown granularity, timestamp field or week start
    """

    grain = _granularity(granularity)
    if timestamp_field not in TIMESTAMP_FIELDS:
        raise ValueError(f"Unknown timestamp field {timestamp_field!r}, expected one of {TIMESTAMP_FIELDS}")
    if not 0 <= week_start <= 6:
        raise ValueError("week_start must be a weekday number between 0 (Monday) and 6")

    now = now or utcnow()
    end = window.end
    if end <= window.start:
        return []

    edges: list[tuple[datetime, datetime, datetime]] = []
    cursor = _floor(window.start, grain, week_start)
    while cursor < end:
        calendar_end = _advance(cursor, grain)
        edges.append((max(cursor, window.start), min(calendar_end, end), calendar_end))
        cursor = calendar_end

    grouped: dict[int, list[EventRecord]] = defaultdict(list)
    skipped = 0
    starts = [edge[0] for edge in edges]
    for record in records:
        moment = getattr(record, timestamp_field)
        if moment is None:
            skipped += 1
            continue
        if not window.start <= moment < end:
            continue
        grouped[bisect_right(starts, moment) - 1].append(record)

    if skipped:
        logger.debug("bucketize: %d records without %s skipped", skipped, timestamp_field)

    return [
        Bucket(
            label=_label(_floor(start, grain, week_start), grain),
            start=start,
            end=bucket_end,
            is_partial=calendar_end > now,
            metrics=_aggregate(grouped.get(index, [])),
        )
        for index, (start, bucket_end, calendar_end) in enumerate(edges)
    ]


def bucketize_by_entity(
    records: Iterable[EventRecord],
    granularity: Granularity | str,
    window: Window,
    timestamp_field: str = "occurred_at",
    now: Optional[datetime] = None,
    week_start: int = 0,
) -> dict[str, list[Bucket]]:
    """Bucket records separately per ``entity_key``; keyless records are dropped."""

    by_entity: dict[str, list[EventRecord]] = defaultdict(list)
    for record in records:
        if record.entity_key:
            by_entity[record.entity_key].append(record)

    now = now or utcnow()
    return {
        entity: bucketize(entity_records, granularity, window, timestamp_field, now, week_start)
        for entity, entity_records in sorted(by_entity.items())
    }


def complete_buckets(buckets: list[Bucket]) -> list[Bucket]:
    """Drop the trailing run of partial buckets."""

    complete = list(buckets)
    while complete and complete[-1].is_partial:
        complete.pop()
    return complete
