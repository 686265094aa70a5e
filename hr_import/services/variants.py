from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

from ..db.store import TableSpec
from ..models.entity import MatchResult, MatchStatus
from ..models.raw_row import RawRow
from ..models.reconciliation import ErrorKind, ReconciliationRecord, RecordState, RowIssue
from ..models.records import (
    DURATION_METRICS,
    LIST_METRICS,
    NUMERIC_METRICS,
    AttendanceFields,
    PerformanceMetrics,
)
from .fields import FieldError, parse_count, parse_day, parse_duration, parse_list, parse_timestamp
from .grouper import group_events
from .resolver import EntityResolver

"""Import variants: attendance (biometric logs) and performance (monthly metrics).

A variant fixes the column layout of its upload, the typed schema of its review
records, the target table with its natural key, and how a reviewed record maps
to a stored row. Both variants share the validation rules below.
"""

__all__ = [
    "VariantContext",
    "ImportVariant",
    "AttendanceVariant",
    "PerformanceVariant",
    "ATTENDANCE",
    "PERFORMANCE",
    "get_variant",
]


@dataclass(frozen=True)
class VariantContext:
    organization_id: str
    timezone: str | None = None
    period_start: date | None = None  # performance: first day of the imported month


class ImportVariant:
    name: str = ""
    table: TableSpec
    name_label: str = ""
    team_label: str | None = None
    expected_columns: tuple[str, ...] = ()

    def build_records(
        self, rows: Sequence[RawRow], resolver: EntityResolver, context: VariantContext
    ) -> tuple[list[ReconciliationRecord], list[RowIssue]]:
        raise NotImplementedError

    def normalize(
        self, raw_fields: Mapping[str, Any], row: int, context: VariantContext
    ) -> tuple[Any, list[RowIssue]]:
        raise NotImplementedError

    def to_store_row(self, record: ReconciliationRecord, context: VariantContext) -> dict[str, Any]:
        raise NotImplementedError

    def display_identity(self, record: ReconciliationRecord) -> str:
        return str(record.raw_fields.get(self.name_label) or f"row {record.source_row_number}")

    def natural_key(self, record: ReconciliationRecord, context: VariantContext) -> tuple[Any, ...]:
        row = self.to_store_row(record, context)
        return tuple(row[c] for c in self.table.key_columns)

    # -- shared review rules -------------------------------------------------

    @staticmethod
    def apply_match(record: ReconciliationRecord, match: MatchResult) -> None:
        record.entity_id = match.entity_id
        record.team_id = match.team_id
        record.candidates = match.candidates if match.status is MatchStatus.AMBIGUOUS else ()

    def revalidate(self, record: ReconciliationRecord, context: VariantContext) -> list[RowIssue]:
        """Re-run every check on ``record`` and refresh its typed fields and state."""
        row = record.source_row_number
        fields, issues = self.normalize(record.raw_fields, row, context)
        record.fields = fields

        name = record.raw_fields.get(self.name_label)
        entity_issues: list[RowIssue] = []
        if record.entity_id is None:
            if record.candidates:
                entity_issues.append(
                    RowIssue(
                        row,
                        ErrorKind.AMBIGUOUS_ENTITY,
                        f"Name '{name}' matches {len(record.candidates)} active employees.",
                        field=self.name_label,
                    )
                )
            else:
                entity_issues.append(
                    RowIssue(row, ErrorKind.UNRESOLVED_ENTITY, f"User '{name}' not found.", field=self.name_label)
                )
        elif record.team_id is None:
            entity_issues.append(
                RowIssue(
                    row,
                    ErrorKind.UNRESOLVED_ENTITY,
                    f"Team for user '{name}' not found.",
                    field=self.team_label or self.name_label,
                )
            )

        record.issues = entity_issues + issues
        if record.state is not RecordState.AWAITING_ENTITY_CREATION:
            record.state = RecordState.BLOCKED if record.issues else RecordState.READY
        return record.issues


class AttendanceVariant(ImportVariant):
    name = "attendance"
    name_label = "Name"
    timestamp_label = "Log Date"
    date_label = "Date"
    check_in_label = "Check In"
    check_out_label = "Check Out"
    expected_columns = ("Name", "Log Date")

    def __init__(self, table_name: str = "attendance") -> None:
        self.table = TableSpec(
            name=table_name,
            org_column="company_id",
            entity_column="employee_id",
            date_column="date",
            key_columns=("employee_id", "date"),
        )

    def build_records(
        self, rows: Sequence[RawRow], resolver: EntityResolver, context: VariantContext
    ) -> tuple[list[ReconciliationRecord], list[RowIssue]]:
        grouped = group_events(
            rows,
            resolver,
            name_label=self.name_label,
            timestamp_label=self.timestamp_label,
            timezone=context.timezone,
        )
        records: list[ReconciliationRecord] = []
        for group in grouped.groups:
            record = ReconciliationRecord(
                source_row_number=group.first_row,
                source_rows=tuple(group.source_rows),
                raw_fields={
                    self.name_label: group.display_name,
                    self.date_label: group.key.work_date.isoformat(),
                    self.check_in_label: group.check_in,
                    self.check_out_label: group.check_out,
                },
            )
            self.apply_match(record, group.match)
            self.revalidate(record, context)
            records.append(record)
        return records, grouped.errors

    def normalize(
        self, raw_fields: Mapping[str, Any], row: int, context: VariantContext
    ) -> tuple[AttendanceFields | None, list[RowIssue]]:
        issues: list[RowIssue] = []
        parsed: dict[str, Any] = {}
        for label, parser in (
            (self.date_label, lambda v, lbl: parse_day(v, lbl)),
            (self.check_in_label, lambda v, lbl: parse_timestamp(v, lbl, context.timezone)),
            (self.check_out_label, lambda v, lbl: parse_timestamp(v, lbl, context.timezone)),
        ):
            try:
                parsed[label] = parser(raw_fields.get(label), label)
            except FieldError as e:
                issues.append(RowIssue(row, ErrorKind.INVALID_FIELD, str(e), field=label))
        if issues:
            return None, issues

        work_date = parsed[self.date_label]
        check_in = parsed[self.check_in_label]
        check_out = parsed[self.check_out_label]
        if check_in > check_out:
            issues.append(
                RowIssue(row, ErrorKind.INVALID_FIELD, "Check In is after Check Out", field=self.check_in_label)
            )
        if check_in.date() != work_date:
            issues.append(
                RowIssue(row, ErrorKind.INVALID_FIELD, f"Check In is not on {work_date}", field=self.check_in_label)
            )
        if issues:
            return None, issues
        return AttendanceFields(work_date=work_date, check_in=check_in, check_out=check_out), []

    def to_store_row(self, record: ReconciliationRecord, context: VariantContext) -> dict[str, Any]:
        fields = record.fields
        if not isinstance(fields, AttendanceFields):
            raise ValueError(f"row {record.source_row_number} has no valid attendance fields")
        return {
            "employee_id": record.entity_id,
            "company_id": context.organization_id,
            "date": fields.work_date,
            "check_in_time": fields.check_in,
            "check_out_time": fields.check_out,
            "status": fields.status,
            "notes": fields.notes,
        }

    def display_identity(self, record: ReconciliationRecord) -> str:
        return f"{record.raw_fields.get(self.name_label)} on {record.raw_fields.get(self.date_label)}"


# column label -> PerformanceMetrics attribute
PERFORMANCE_COLUMNS: dict[str, str] = {
    "Monster": "monster",
    "Dice": "dice",
    "LinkedIn Profiles viewed": "linkedin_profiles_viewed",
    "LinkedIn InMails sent": "linkedin_inmails_sent",
    "Total Calls": "total_calls",
    "Total Call Duration": "total_call_duration",
    "Total Submissions": "total_submissions",
    "Total Interviews": "total_interviews",
    "Offers": "offers",
    "Starts": "starts",
    "Offered": "offered",
    "Placed": "placed",
}


class PerformanceVariant(ImportVariant):
    name = "performance"
    name_label = "USER NAME"
    team_label = "Team"
    # fixed 12-column layout; Offered / Placed are optional extras
    expected_columns = (
        "Team",
        "USER NAME",
        "Monster",
        "Dice",
        "LinkedIn Profiles viewed",
        "LinkedIn InMails sent",
        "Total Calls",
        "Total Call Duration",
        "Total Submissions",
        "Total Interviews",
        "Offers",
        "Starts",
    )

    def __init__(self, table_name: str = "performance_reports") -> None:
        self.table = TableSpec(
            name=table_name,
            org_column="company_id",
            entity_column="user_id",
            date_column="report_date",
            key_columns=("user_id", "report_date"),
            team_column="team_id",
        )

    def build_records(
        self, rows: Sequence[RawRow], resolver: EntityResolver, context: VariantContext
    ) -> tuple[list[ReconciliationRecord], list[RowIssue]]:
        if context.period_start is None:
            raise ValueError("performance import needs the period (year / month) being imported")
        records: list[ReconciliationRecord] = []
        for raw in rows:
            record = ReconciliationRecord(source_row_number=raw.row_number, raw_fields=dict(raw.values))
            self.apply_match(record, resolver.resolve(raw.get(self.name_label)))
            self.revalidate(record, context)
            records.append(record)
        return records, []

    def normalize(
        self, raw_fields: Mapping[str, Any], row: int, context: VariantContext
    ) -> tuple[PerformanceMetrics | None, list[RowIssue]]:
        values: dict[str, Any] = {}
        issues: list[RowIssue] = []
        for label, attr in PERFORMANCE_COLUMNS.items():
            raw = raw_fields.get(label)
            try:
                if attr in NUMERIC_METRICS:
                    values[attr] = parse_count(raw, label)
                elif attr in DURATION_METRICS:
                    values[attr] = parse_duration(raw, label)
                elif attr in LIST_METRICS:
                    values[attr] = parse_list(raw)
            except FieldError as e:
                issues.append(RowIssue(row, ErrorKind.INVALID_FIELD, str(e), field=label))
        if issues:
            return None, issues
        return PerformanceMetrics(**values), []

    def to_store_row(self, record: ReconciliationRecord, context: VariantContext) -> dict[str, Any]:
        metrics = record.fields
        if not isinstance(metrics, PerformanceMetrics):
            raise ValueError(f"row {record.source_row_number} has no valid metrics")
        row: dict[str, Any] = {
            "user_id": record.entity_id,
            "team_id": record.team_id,
            "company_id": context.organization_id,
            "report_date": context.period_start,
        }
        for attr in NUMERIC_METRICS:
            row[attr] = getattr(metrics, attr)
        for attr in DURATION_METRICS:
            row[attr] = getattr(metrics, attr).render()
        for attr in LIST_METRICS:
            row[attr] = getattr(metrics, attr).render()
        return row

    def display_identity(self, record: ReconciliationRecord) -> str:
        return f"{record.raw_fields.get(self.name_label)} (row {record.source_row_number})"


ATTENDANCE = AttendanceVariant()
PERFORMANCE = PerformanceVariant()


def get_variant(name: str, tables: Mapping[str, str] | None = None) -> ImportVariant:
    """Variant by name, optionally bound to a non-default table name."""
    table_name = (tables or {}).get(name)
    if name == ATTENDANCE.name:
        return AttendanceVariant(table_name) if table_name else ATTENDANCE
    if name == PERFORMANCE.name:
        return PerformanceVariant(table_name) if table_name else PERFORMANCE
    raise ValueError(f"unknown import variant: {name}")
