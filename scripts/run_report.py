"""Run the operations analytics report over a CSV/JSON record export."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from operations_engine.adapters import csv_adapter, json_adapter
from operations_engine.bucketing import utcnow
from operations_engine.config import EngineConfig
from operations_engine.report import build_report
from operations_engine.schema import Window


def _load_records(path: Path):
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return csv_adapter.parse(str(path))
    if suffix == ".json":
        return json_adapter.parse(str(path))
    raise ValueError("Unsupported input format, expected .csv or .json")


def _parse_day(value: str) -> datetime:
    return datetime.fromisoformat(value)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the operations analytics report")
    parser.add_argument("--data", required=True, help="Path to CSV/JSON records file")
    parser.add_argument("--from", dest="start", type=_parse_day, help="Window start date (default: 180 days ago)")
    parser.add_argument("--to", dest="end", type=_parse_day, help="Window end date, exclusive (default: tomorrow)")
    parser.add_argument("--now", type=_parse_day, help="Evaluation time (default: current UTC time)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    end = args.end or today + timedelta(days=1)
    start = args.start or end - timedelta(days=180)

    records = _load_records(Path(args.data))
    report = build_report(records, Window(start=start, end=end), now=args.now, config=EngineConfig.from_env())

    print(json.dumps(report, indent=2, default=str))

    outputs_dir = Path("outputs")
    outputs_dir.mkdir(parents=True, exist_ok=True)
    out_path = outputs_dir / "ops_report.json"
    out_path.write_text(json.dumps(report, indent=2, default=str), encoding="utf-8")
    print(f"Saved report to {out_path}")


if __name__ == "__main__":
    main()
