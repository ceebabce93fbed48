"""Core data schema for operations analytics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class Granularity(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class Status(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class Direction(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    FLAT = "flat"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Band(str, Enum):
    GOOD = "good"
    WATCH = "watch"
    CRITICAL = "critical"


SEVERITY_RANK = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}


@dataclass(frozen=True)
class EventRecord:
    """Normalized event record used by all modules."""

    id: str
    entity_key: Optional[str]
    category: Optional[str]
    occurred_at: Optional[datetime]
    resolved_at: Optional[datetime] = None
    numeric_value: Optional[float] = None
    status: Status = Status.OPEN
    tags: tuple[str, ...] = ()
    title: Optional[str] = None
    priority: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    assignee: Optional[str] = None
    comment: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status in (Status.OPEN, Status.IN_PROGRESS)


@dataclass(frozen=True)
class Window:
    """Half-open time interval ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Window end {self.end} precedes start {self.start}")

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


@dataclass
class Bucket:
    """One calendar-aligned aggregation window and its metrics.

    ``start`` and ``end`` are the calendar period clipped to the requested
    window, never to the current time. ``is_partial`` is set when the
    calendar period ends after ``now``, which for a clipped last bucket can
    differ from ``end`` being in the future.
    """

    label: str
    start: datetime
    end: datetime
    is_partial: bool = False
    metrics: dict[str, float] = field(default_factory=dict)

    @property
    def count(self) -> float:
        return self.metrics.get("count", 0)


@dataclass(frozen=True)
class Delta:
    current: float
    prior: float
    value_delta: float
    percent_delta: Optional[float]
    direction: Direction
    insufficient_baseline: bool = False


@dataclass
class Anomaly:
    title: str
    description: str
    severity: Severity
    entity_key: Optional[str] = None
    navigation_hint: Optional[str] = None
    rule: str = ""


@dataclass
class ForecastPoint:
    period_label: str
    actual: Optional[float]
    forecast: float
    upper_bound: float
    lower_bound: float


@dataclass
class CompositeScore:
    entity_key: str
    score: int
    contributing_signals: dict[str, float] = field(default_factory=dict)


@dataclass
class CleanupItem:
    """An open task flagged for cleanup, with its age bookkeeping."""

    record: EventRecord
    category: str
    age_days: int
    days_overdue: int
    dupe_count: int = 1
    ghost_resolved_at: Optional[datetime] = None
