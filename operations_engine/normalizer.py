"""Raw row coercion into ``EventRecord``.

Rows arrive from several source systems with different key names, nullable
timestamps and numbers, and free-text comment blobs that are sometimes JSON.
Nothing here raises on bad data: a field that cannot be read becomes ``None``
and downstream aggregates skip it.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional

from operations_engine.schema import EventRecord, Status

logger = logging.getLogger(__name__)

_ALIASES = {
    "id": ("id", "breezeway_id", "task_id", "transaction_id", "review_id"),
    "entity_key": ("entity_key", "property_name", "listing_id", "home_id", "entity"),
    "category": ("category", "department", "type"),
    "occurred_at": ("occurred_at", "created_at", "transaction_date", "reviewed_at", "timestamp"),
    "resolved_at": ("resolved_at", "finished_at", "completed_at"),
    "numeric_value": ("numeric_value", "cost", "amount", "total_time_minutes", "rating", "value"),
    "status": ("status", "status_stage", "status_code"),
    "tags": ("tags", "labels"),
    "title": ("title", "name", "task_name", "ai_title"),
    "priority": ("priority",),
    "scheduled_at": ("scheduled_at", "scheduled_date"),
    "assignee": ("assignee", "assignee_name", "assigned_to"),
    "comment": ("comment", "comments", "notes"),
}

_STATUS_MAP = {
    "open": Status.OPEN,
    "new": Status.OPEN,
    "pending": Status.OPEN,
    "scheduled": Status.OPEN,
    "in_progress": Status.IN_PROGRESS,
    "in-progress": Status.IN_PROGRESS,
    "in progress": Status.IN_PROGRESS,
    "started": Status.IN_PROGRESS,
    "resolved": Status.RESOLVED,
    "finished": Status.RESOLVED,
    "done": Status.RESOLVED,
    "completed": Status.RESOLVED,
    "closed": Status.CLOSED,
    "cancelled": Status.CLOSED,
    "canceled": Status.CLOSED,
}

_COMMENT_KEYS = ("text", "comment", "body", "message")


def _pick(row: dict, field_name: str) -> Any:
    for key in _ALIASES[field_name]:
        value = row.get(key)
        if value is not None and value != "":
            return value
    return None


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Coerce a timestamp-ish value into a naive UTC ``datetime`` or ``None``."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            return None
        try:
            parsed = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_number(value: Any) -> Optional[float]:
    """Coerce a numeric-ish value into a finite ``float`` or ``None``."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "").replace("$", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def parse_comment(blob: Any) -> Optional[str]:
    """Extract display text from a comment blob that may be JSON-shaped."""

    if blob is None:
        return None
    if isinstance(blob, (dict, list)):
        payload = blob
    else:
        text = str(blob).strip()
        if not text:
            return None
        if text[0] not in "{[":
            return text
        try:
            payload = json.loads(text)
        except ValueError:
            return text

    if isinstance(payload, dict):
        for key in _COMMENT_KEYS:
            if payload.get(key):
                return _clean_text(payload[key])
        return None
    if isinstance(payload, list):
        parts = [parse_comment(item) for item in payload]
        joined = " ".join(part for part in parts if part)
        return joined or None
    return _clean_text(payload)


def parse_tags(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                value = json.loads(text)
            except ValueError:
                value = text.strip("[]").split(",")
        else:
            value = text.split(",")
    if not isinstance(value, (list, tuple, set)):
        value = [value]
    return tuple(tag for tag in (_clean_text(item) for item in value) if tag)


def normalize_status(value: Any, resolved_at: Optional[datetime]) -> Status:
    """Map a source status vocabulary onto ``Status``."""

    if isinstance(value, Status):
        return value
    key = (_clean_text(value) or "").lower()
    if key in _STATUS_MAP:
        return _STATUS_MAP[key]
    return Status.RESOLVED if resolved_at is not None else Status.OPEN


def normalize_record(raw: dict, index: int = 0) -> EventRecord:
    """Normalize a single raw row into an ``EventRecord``."""

    record_id = _clean_text(_pick(raw, "id")) or f"row-{index}"
    occurred_at = parse_timestamp(_pick(raw, "occurred_at"))
    resolved_at = parse_timestamp(_pick(raw, "resolved_at"))

    if occurred_at is None:
        logger.debug("record %s: missing occurred_at", record_id)
    if occurred_at is not None and resolved_at is not None and resolved_at < occurred_at:
        logger.debug("record %s: resolved_at precedes occurred_at, dropping resolved_at", record_id)
        resolved_at = None

    raw_value = _pick(raw, "numeric_value")
    numeric_value = parse_number(raw_value)
    if raw_value is not None and numeric_value is None:
        logger.debug("record %s: malformed numeric value %r", record_id, raw_value)

    category = _clean_text(_pick(raw, "category"))
    priority = _clean_text(_pick(raw, "priority"))

    return EventRecord(
        id=record_id,
        entity_key=_clean_text(_pick(raw, "entity_key")),
        category=category.lower() if category else None,
        occurred_at=occurred_at,
        resolved_at=resolved_at,
        numeric_value=numeric_value,
        status=normalize_status(_pick(raw, "status"), resolved_at),
        tags=parse_tags(_pick(raw, "tags")),
        title=_clean_text(_pick(raw, "title")),
        priority=priority.lower() if priority else None,
        scheduled_at=parse_timestamp(_pick(raw, "scheduled_at")),
        assignee=_clean_text(_pick(raw, "assignee")),
        comment=parse_comment(_pick(raw, "comment")),
    )


def normalize_records(rows: Iterable[dict]) -> list[EventRecord]:
    """Normalize raw rows, skipping anything that is not a mapping."""

    records: list[EventRecord] = []
    for index, row in enumerate(rows, start=1):
        if not isinstance(row, dict):
            logger.debug("row %d: not a mapping, skipped", index)
            continue
        records.append(normalize_record(row, index))
    return records
