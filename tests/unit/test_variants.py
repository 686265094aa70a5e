from __future__ import annotations

from datetime import date, datetime

import pytest

from hr_import.models.duration import Duration
from hr_import.models.list_field import ListField
from hr_import.models.raw_row import RawRow
from hr_import.models.reconciliation import ErrorKind, RecordState
from hr_import.models.records import AttendanceFields, PerformanceMetrics
from hr_import.services.variants import (
    ATTENDANCE,
    PERFORMANCE,
    AttendanceVariant,
    PerformanceVariant,
    VariantContext,
    get_variant,
)

MARCH = VariantContext(organization_id="acme", period_start=date(2024, 3, 1))


def test_performance_row_becomes_ready_record(resolver, perf_row):
    records, errors = PERFORMANCE.build_records(
        [RawRow(2, perf_row("Priya Nair", **{"Offered": "Jane Doe, 0", "Total Calls": "1,024"}))], resolver, MARCH
    )
    assert errors == []
    (record,) = records
    assert record.state is RecordState.READY
    assert (record.entity_id, record.team_id) == ("emp-4", "team-2")
    assert isinstance(record.fields, PerformanceMetrics)
    assert record.fields.total_calls == 1024
    assert record.fields.total_call_duration == Duration(1800)
    assert record.fields.offered == ListField(["Jane Doe"])


def test_performance_store_row(resolver, perf_row):
    records, _ = PERFORMANCE.build_records([RawRow(2, perf_row("Priya Nair"))], resolver, MARCH)
    row = PERFORMANCE.to_store_row(records[0], MARCH)
    assert row["user_id"] == "emp-4"
    assert row["team_id"] == "team-2"
    assert row["company_id"] == "acme"
    assert row["report_date"] == date(2024, 3, 1)
    assert row["total_call_duration"] == "0:30:00"
    assert row["offered"] is None and row["placed"] is None
    assert PERFORMANCE.natural_key(records[0], MARCH) == ("emp-4", date(2024, 3, 1))


def test_performance_needs_period(resolver, perf_row):
    with pytest.raises(ValueError):
        PERFORMANCE.build_records([RawRow(2, perf_row("Priya Nair"))], resolver, VariantContext("acme"))


def test_performance_user_without_team_is_blocked(resolver, perf_row):
    records, _ = PERFORMANCE.build_records([RawRow(2, perf_row("Ravi Patel"))], resolver, MARCH)
    record = records[0]
    assert record.state is RecordState.BLOCKED
    assert [i.message for i in record.issues] == ["Team for user 'Ravi Patel' not found."]


def test_performance_unknown_and_ambiguous_users(resolver, perf_row):
    records, _ = PERFORMANCE.build_records(
        [RawRow(2, perf_row("Nobody")), RawRow(3, perf_row("J Smith"))], resolver, MARCH
    )
    unknown, ambiguous = records
    assert unknown.issues[0].kind is ErrorKind.UNRESOLVED_ENTITY
    assert unknown.issues[0].message == "User 'Nobody' not found."
    assert ambiguous.issues[0].kind is ErrorKind.AMBIGUOUS_ENTITY
    assert ambiguous.candidates == ("emp-2", "emp-3")


def test_performance_invalid_fields_block_only_that_record(resolver, perf_row):
    records, _ = PERFORMANCE.build_records(
        [
            RawRow(2, perf_row("Priya Nair", **{"Total Calls": -4, "Total Call Duration": "5 min"})),
            RawRow(3, perf_row("A. Kumar")),
        ],
        resolver,
        MARCH,
    )
    bad, good = records
    assert bad.state is RecordState.BLOCKED
    assert bad.fields is None
    assert {i.field for i in bad.field_issues()} == {"Total Calls", "Total Call Duration"}
    assert all(i.kind is ErrorKind.INVALID_FIELD for i in bad.issues)
    assert good.state is RecordState.READY


def test_attendance_records_from_grouped_events(resolver):
    rows = [
        RawRow(2, {"Name": "A. Kumar", "Log Date": "2024-03-01 09:02"}),
        RawRow(3, {"Name": "A. Kumar", "Log Date": "2024-03-01 18:41"}),
    ]
    ctx = VariantContext("acme")
    records, errors = ATTENDANCE.build_records(rows, resolver, ctx)
    assert errors == []
    (record,) = records
    assert record.source_rows == (2, 3)
    assert record.raw_fields["Date"] == "2024-03-01"
    assert record.state is RecordState.READY
    assert isinstance(record.fields, AttendanceFields)

    row = ATTENDANCE.to_store_row(record, ctx)
    assert row == {
        "employee_id": "emp-1",
        "company_id": "acme",
        "date": date(2024, 3, 1),
        "check_in_time": datetime(2024, 3, 1, 9, 2),
        "check_out_time": datetime(2024, 3, 1, 18, 41),
        "status": "present",
        "notes": "Imported from biometric device",
    }
    assert ATTENDANCE.display_identity(record) == "A. Kumar on 2024-03-01"


def test_attendance_employee_without_team_is_blocked(resolver):
    records, _ = ATTENDANCE.build_records(
        [RawRow(2, {"Name": "Ravi Patel", "Log Date": "2024-03-01 09:00"})], resolver, VariantContext("acme")
    )
    record = records[0]
    assert record.entity_id == "emp-5"
    assert record.state is RecordState.BLOCKED
    assert [(i.kind, i.message, i.field) for i in record.issues] == [
        (ErrorKind.UNRESOLVED_ENTITY, "Team for user 'Ravi Patel' not found.", "Name")
    ]


def test_attendance_check_in_after_check_out_is_invalid():
    fields, issues = ATTENDANCE.normalize(
        {"Date": "2024-03-01", "Check In": "2024-03-01 18:00", "Check Out": "2024-03-01 09:00"},
        7,
        VariantContext("acme"),
    )
    assert fields is None
    assert issues[0].row == 7
    assert issues[0].message == "Check In is after Check Out"


def test_to_store_row_refuses_invalid_record(resolver, perf_row):
    records, _ = PERFORMANCE.build_records([RawRow(2, perf_row("Priya Nair", Dice="x"))], resolver, MARCH)
    with pytest.raises(ValueError):
        PERFORMANCE.to_store_row(records[0], MARCH)


def test_get_variant_with_table_override():
    assert get_variant("attendance") is ATTENDANCE
    custom = get_variant("performance", {"performance": "perf_monthly"})
    assert isinstance(custom, PerformanceVariant)
    assert custom.table.name == "perf_monthly"
    assert isinstance(get_variant("attendance", {"performance": "x"}), AttendanceVariant)
    with pytest.raises(ValueError):
        get_variant("payroll")
