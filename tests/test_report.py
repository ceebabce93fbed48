from datetime import datetime, timedelta

import pytest

from operations_engine.report import build_report
from operations_engine.schema import EventRecord, Status, Window

NOW = datetime(2025, 7, 1)


def sample_records():
    records = []
    for month, spend in enumerate([1000, 1050, 1100, 1150, 1200, 1250], start=1):
        day = datetime(2025, month, 15)
        records.append(EventRecord(f"c{month}", "Harbor House", "cost", day, numeric_value=spend))
        records.append(
            EventRecord(
                f"h{month}", "Harbor House", "housekeeping", day, day + timedelta(hours=2), 120.0, Status.RESOLVED, title="Turnover"
            )
        )
    records.append(EventRecord("m1", "Cedar Loft", "maintenance", datetime(2025, 6, 20), title="Leak", assignee=None))
    return records


def test_build_report_composes_components():
    report = build_report(sample_records(), Window(datetime(2025, 1, 1), NOW), now=NOW)

    assert [b["label"] for b in report["monthly"]] == [f"2025-0{m}" for m in range(1, 7)]
    assert report["prior_window"]["end"] == "2024-12-31T00:00:00"
    assert report["spend_forecast"][6]["forecast"] == pytest.approx(1300)
    assert report["cleanup_queue"] == {"unassigned": 1}
    assert {s["entity_key"] for s in report["entity_scores"]} == {"Harbor House", "Cedar Loft"}
    assert report["entity_scores"][0]["entity_key"] == "Cedar Loft"
    assert report["deltas"]["created"]["insufficient_baseline"] is True
    assert all(a["severity"] in ("high", "medium", "low") for a in report["anomalies"])


def test_property_health_only_covers_window():
    records = sample_records()
    records.append(EventRecord("old", "Pine Cottage", "maintenance", datetime(2024, 6, 1), title="Gutter"))
    report = build_report(records, Window(datetime(2025, 1, 1), NOW), now=NOW)

    assert {h["entity_key"] for h in report["property_health"]} == {"Harbor House", "Cedar Loft"}
