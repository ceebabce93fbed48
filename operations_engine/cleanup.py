"""Cleanup queue classification and per-entity penalty signals."""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime
from typing import Iterable, Optional

from operations_engine.bucketing import utcnow
from operations_engine.schema import CleanupItem, EventRecord

CATEGORY_ORDER = ("ghost", "duplicate", "overdue", "stale", "unassigned")


def _key(record: EventRecord) -> tuple[Optional[str], Optional[str]]:
    return record.entity_key, (record.title or "").strip().lower() or None


def _ghost_resolutions(records: list[EventRecord]) -> dict[str, datetime]:
    """Open record id -> latest resolution of a same-named task at the same entity."""

    finished: dict[tuple, list[datetime]] = defaultdict(list)
    for record in records:
        if not record.is_open and record.resolved_at is not None and _key(record)[1]:
            finished[_key(record)].append(record.resolved_at)

    ghosts: dict[str, datetime] = {}
    for record in records:
        if not record.is_open or record.occurred_at is None:
            continue
        later = [moment for moment in finished.get(_key(record), []) if moment > record.occurred_at]
        if later:
            ghosts[record.id] = max(later)
    return ghosts


def _flags(record: EventRecord, now: datetime, stale_days: int, dupes: Counter, ghosts: dict) -> dict[str, bool]:
    age = (now - record.occurred_at).days if record.occurred_at else 0
    return {
        "ghost": record.id in ghosts,
        "duplicate": _key(record)[1] is not None and dupes[_key(record)] > 1,
        "overdue": record.scheduled_at is not None and record.scheduled_at.date() < now.date(),
        "stale": record.scheduled_at is None and age > stale_days,
        "unassigned": not record.assignee,
    }


def classify_open_tasks(
    records: Iterable[EventRecord],
    now: Optional[datetime] = None,
    stale_days: int = 90,
) -> list[CleanupItem]:
    """Flag open tasks needing cleanup, one category each.

    Precedence is ghost, duplicate, overdue, stale, unassigned. The queue is
    ordered by that precedence, then days overdue and age, both descending.
    """

    now = now or utcnow()
    records = list(records)
    open_records = [r for r in records if r.is_open]
    dupes = Counter(_key(r) for r in open_records)
    ghosts = _ghost_resolutions(records)

    queue: list[CleanupItem] = []
    for record in open_records:
        flags = _flags(record, now, stale_days, dupes, ghosts)
        category = next((name for name in CATEGORY_ORDER if flags[name]), None)
        if category is None:
            continue
        overdue_days = (now.date() - record.scheduled_at.date()).days if flags["overdue"] else 0
        queue.append(
            CleanupItem(
                record=record,
                category=category,
                age_days=(now - record.occurred_at).days if record.occurred_at else 0,
                days_overdue=overdue_days,
                dupe_count=dupes[_key(record)] if flags["duplicate"] else 1,
                ghost_resolved_at=ghosts.get(record.id),
            )
        )

    return sorted(queue, key=lambda item: (CATEGORY_ORDER.index(item.category), -item.days_overdue, -item.age_days))


def entity_signals(
    records: Iterable[EventRecord],
    now: Optional[datetime] = None,
    stale_days: int = 90,
) -> dict[str, dict[str, float]]:
    """Per-entity open, overdue, duplicate and ghost counts for the scorer.

    Flags are counted independently, so one task can add to several counts.
    """

    now = now or utcnow()
    records = list(records)
    open_records = [r for r in records if r.is_open]
    dupes = Counter(_key(r) for r in open_records)
    ghosts = _ghost_resolutions(records)

    signals: dict[str, dict[str, float]] = {}
    for record in records:
        if not record.entity_key:
            continue
        entity = signals.setdefault(
            record.entity_key,
            {"open_count": 0.0, "overdue_count": 0.0, "duplicate_count": 0.0, "ghost_count": 0.0},
        )
        if not record.is_open:
            continue
        flags = _flags(record, now, stale_days, dupes, ghosts)
        entity["open_count"] += 1
        entity["overdue_count"] += flags["overdue"]
        entity["duplicate_count"] += flags["duplicate"]
        entity["ghost_count"] += flags["ghost"]
    return signals
