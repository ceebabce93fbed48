"""Demo script for operations-engine."""

import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from operations_engine.adapters.csv_adapter import parse
from operations_engine.forecast import forecast
from operations_engine.reconcile import reconcile_names
from operations_engine.report import build_report
from operations_engine.schema import Window


def main() -> None:
    records = parse(str(Path(__file__).with_name("sample_records.csv")))
    window = Window(start=datetime(2025, 1, 1), end=datetime(2025, 7, 1))
    report = build_report(records, window, now=datetime(2025, 7, 1))
    print("Anomalies:", [a["title"] for a in report["anomalies"]])
    print("Entity scores:", report["entity_scores"])
    print("Spend forecast:", [(p.period_label, round(p.forecast)) for p in forecast([1000, 1050, 1100, 1150, 1200, 1250])])
    print("Name mapping:", reconcile_names(["Jane Smith", "Jon Doe"], ["Smith, Jane", "John Doe"]))


if __name__ == "__main__":
    main()
