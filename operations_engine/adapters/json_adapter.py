"""JSON adapter for operations records."""

from __future__ import annotations

import json

from operations_engine.normalizer import normalize_records
from operations_engine.schema import EventRecord


def read_rows(file_path: str) -> list[dict]:
    """Load a JSON export; accepts a list of objects or ``{"data": [...]}``."""

    with open(file_path, encoding="utf-8") as handle:
        payload = json.load(handle)

    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        payload = payload["data"]
    if not isinstance(payload, list):
        raise ValueError("JSON payload must be a list of objects")
    return payload


def parse(file_path: str) -> list[EventRecord]:
    """Parse JSON file into normalized records."""

    return normalize_records(read_rows(file_path))
