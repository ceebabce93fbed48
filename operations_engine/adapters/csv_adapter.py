"""CSV adapter for operations records."""

from __future__ import annotations

import csv

from operations_engine.normalizer import normalize_records
from operations_engine.schema import EventRecord


def read_rows(file_path: str) -> list[dict]:
    """Read a CSV export into raw row dicts, blank cells as ``None``."""

    with open(file_path, newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        if not reader.fieldnames:
            return []
        return [{key: (value if value != "" else None) for key, value in row.items() if key} for row in reader]


def parse(file_path: str) -> list[EventRecord]:
    """Parse CSV file into a list of normalized records."""

    return normalize_records(read_rows(file_path))
