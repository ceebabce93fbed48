from datetime import date, datetime

from operations_engine.normalizer import (
    normalize_record,
    normalize_records,
    parse_comment,
    parse_number,
    parse_tags,
    parse_timestamp,
)
from operations_engine.schema import Status


def test_aliased_keys_are_mapped():
    record = normalize_record(
        {
            "breezeway_id": 1841,
            "property_name": " Harbor House ",
            "department": "Maintenance",
            "created_at": "2025-02-03T14:00:00Z",
            "finished_at": "2025-02-04T09:30:00+00:00",
            "cost": "$1,250.50",
            "status_stage": "finished",
            "priority": "High",
            "scheduled_date": "2025-02-04",
            "assignee_name": "Jon Doe",
            "name": "Leaking faucet",
        }
    )
    assert record.id == "1841"
    assert record.entity_key == "Harbor House"
    assert record.category == "maintenance"
    assert record.occurred_at == datetime(2025, 2, 3, 14)
    assert record.resolved_at == datetime(2025, 2, 4, 9, 30)
    assert record.numeric_value == 1250.5
    assert record.status is Status.RESOLVED
    assert record.priority == "high"
    assert record.scheduled_at == datetime(2025, 2, 4)
    assert record.assignee == "Jon Doe"
    assert record.title == "Leaking faucet"


def test_offsets_are_converted_to_utc():
    assert parse_timestamp("2025-02-03T09:00:00-05:00") == datetime(2025, 2, 3, 14)
    assert parse_timestamp(date(2025, 2, 3)) == datetime(2025, 2, 3)
    assert parse_timestamp(0) == datetime(1970, 1, 1)
    assert parse_timestamp("not a date") is None
    assert parse_timestamp("") is None


def test_numbers_degrade_to_none():
    assert parse_number("42") == 42.0
    assert parse_number(7) == 7.0
    assert parse_number("n/a") is None
    assert parse_number(float("nan")) is None
    assert parse_number(float("inf")) is None
    assert parse_number(True) is None
    assert parse_number("") is None


def test_resolution_before_creation_is_dropped():
    record = normalize_record({"id": "x", "created_at": "2025-03-02T09:00:00", "finished_at": "2025-03-01T09:00:00"})
    assert record.occurred_at == datetime(2025, 3, 2, 9)
    assert record.resolved_at is None
    assert record.status is Status.OPEN


def test_malformed_fields_do_not_fail_the_record():
    record = normalize_record({"id": "y", "created_at": "garbage", "cost": "abc", "status": "mystery"})
    assert record.occurred_at is None
    assert record.numeric_value is None
    assert record.status is Status.OPEN


def test_status_vocabulary():
    assert normalize_record({"status": "in-progress"}).status is Status.IN_PROGRESS
    assert normalize_record({"status": "Cancelled"}).status is Status.CLOSED
    assert normalize_record({"status": "new"}).status is Status.OPEN
    unknown_but_finished = normalize_record({"status": "weird", "created_at": "2025-01-01", "completed_at": "2025-01-02"})
    assert unknown_but_finished.status is Status.RESOLVED


def test_comment_blobs():
    assert parse_comment('{"text": "Replaced pump", "author": "Jon"}') == "Replaced pump"
    assert parse_comment('[{"body": "first"}, "second"]') == "first second"
    assert parse_comment('{"broken json') == '{"broken json'
    assert parse_comment("  plain note ") == "plain note"
    assert parse_comment({"message": "dict blob"}) == "dict blob"
    assert parse_comment('{"author": "Jon"}') is None
    assert parse_comment(None) is None


def test_tags():
    assert parse_tags("urgent, guest-facing") == ("urgent", "guest-facing")
    assert parse_tags('["hvac", "preventive"]') == ("hvac", "preventive")
    assert parse_tags(["a", None, " "]) == ("a",)
    assert parse_tags(None) == ()


def test_normalize_records_skips_non_mappings_and_numbers_ids():
    records = normalize_records([{"name": "first"}, "junk", None, {"id": "abc"}])
    assert [r.id for r in records] == ["row-1", "abc"]
