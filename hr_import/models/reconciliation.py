from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .records import AttendanceFields, PerformanceMetrics

"""ReconciliationRecord: the mutable unit of the review stage.

One record per RawRow (performance) or per grouped employee-day (attendance).
It is mutated in place by review edits and discarded at session end.
"""

__all__ = [
    "ErrorKind",
    "RowIssue",
    "RecordState",
    "StageState",
    "ReconciliationRecord",
]


class ErrorKind(Enum):
    """Error classification in UPPER_SNAKE_CASE (same form as the error log)."""
    MALFORMED_FILE = "MALFORMED_FILE"
    UNRESOLVED_ENTITY = "UNRESOLVED_ENTITY"
    AMBIGUOUS_ENTITY = "AMBIGUOUS_ENTITY"
    INVALID_FIELD = "INVALID_FIELD"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"


@dataclass(frozen=True)
class RowIssue:
    row: int  # source row number
    kind: ErrorKind
    message: str
    field: str | None = None  # column label the issue is about, when known

    @property
    def blocks_entity(self) -> bool:
        return self.kind in (ErrorKind.UNRESOLVED_ENTITY, ErrorKind.AMBIGUOUS_ENTITY)


class RecordState(Enum):
    READY = "ready"
    BLOCKED = "blocked"
    AWAITING_ENTITY_CREATION = "awaiting-entity-creation"


class StageState(Enum):
    REVIEWING = "reviewing"
    AWAITING_ENTITY_CREATION = "awaiting-entity-creation"
    COMMITTED = "committed"
    DISCARDED = "discarded"


@dataclass
class ReconciliationRecord:
    source_row_number: int
    raw_fields: dict[str, Any]
    entity_id: str | None = None
    team_id: str | None = None
    fields: AttendanceFields | PerformanceMetrics | None = None
    issues: list[RowIssue] = field(default_factory=list)
    state: RecordState = RecordState.BLOCKED
    # every source row folded into this record (attendance groups span several)
    source_rows: tuple[int, ...] = ()
    candidates: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.source_rows:
            self.source_rows = (self.source_row_number,)

    @property
    def is_ready(self) -> bool:
        return self.state is RecordState.READY

    def entity_issues(self) -> list[RowIssue]:
        return [i for i in self.issues if i.blocks_entity]

    def field_issues(self) -> list[RowIssue]:
        return [i for i in self.issues if i.kind is ErrorKind.INVALID_FIELD]
