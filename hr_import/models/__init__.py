"""Domain models for the HR bulk import engine.

Rows, directory entries, typed field schemas, review records, commit outcomes
and reporting windows shared by every stage of the import pipeline.
"""

from .commit_outcome import CommitMode, CommitOutcome, RowError
from .duration import Duration, DurationParseError
from .entity import (
    CreatedEntity,
    DirectorySnapshot,
    EntityDirectoryEntry,
    MatchResult,
    MatchStatus,
    NewEntityPayload,
)
from .list_field import ListField
from .period import PeriodAggregate, PeriodRecord, ReportingWindow, WindowKind
from .raw_row import RawRow
from .reconciliation import ErrorKind, ReconciliationRecord, RecordState, RowIssue, StageState
from .records import AttendanceFields, PerformanceMetrics

__all__ = [
    # Ingestion / resolution
    "RawRow",
    "EntityDirectoryEntry",
    "DirectorySnapshot",
    "MatchStatus",
    "MatchResult",
    "NewEntityPayload",
    "CreatedEntity",
    # Field values
    "Duration",
    "DurationParseError",
    "ListField",
    "AttendanceFields",
    "PerformanceMetrics",
    # Review / commit
    "ErrorKind",
    "RowIssue",
    "RecordState",
    "StageState",
    "ReconciliationRecord",
    "CommitMode",
    "CommitOutcome",
    "RowError",
    # Reporting
    "WindowKind",
    "ReportingWindow",
    "PeriodRecord",
    "PeriodAggregate",
]
