from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from ..db.directory import EntityCreationError, EntityDirectory
from ..db.store import StoreFilter
from ..models.commit_outcome import CommitMode, CommitOutcome
from ..models.entity import CreatedEntity, NewEntityPayload
from ..models.reconciliation import ReconciliationRecord, RecordState, RowIssue, StageState
from .resolver import EntityResolver
from .variants import ImportVariant, VariantContext

if TYPE_CHECKING:
    from .commit import CommitEngine

"""Reconciliation stage: interactive review of proposed records before commit.

State machine
-------------
REVIEWING ──begin_entity_creation──▶ AWAITING_ENTITY_CREATION
    ▲                                     │
    └──── create_entity (ok) / cancel ────┘
REVIEWING ──commit──▶ COMMITTED
REVIEWING / AWAITING_ENTITY_CREATION ──discard──▶ DISCARDED

A failed create_entity keeps the stage in AWAITING_ENTITY_CREATION so the
caller can correct the payload and retry, or cancel.
"""

__all__ = [
    "ReconciliationStateError",
    "ReconciliationStage",
]


class ReconciliationStateError(Exception):
    """Raised for an operation the stage (or a record) does not allow in its current state."""


_TRANSITIONS: dict[StageState, frozenset[StageState]] = {
    StageState.REVIEWING: frozenset(
        {StageState.AWAITING_ENTITY_CREATION, StageState.COMMITTED, StageState.DISCARDED}
    ),
    StageState.AWAITING_ENTITY_CREATION: frozenset({StageState.REVIEWING, StageState.DISCARDED}),
    StageState.COMMITTED: frozenset(),
    StageState.DISCARDED: frozenset(),
}


class ReconciliationStage:
    def __init__(
        self,
        variant: ImportVariant,
        resolver: EntityResolver,
        directory: EntityDirectory,
        context: VariantContext,
        records: Iterable[ReconciliationRecord],
    ) -> None:
        self.variant = variant
        self.resolver = resolver
        self.directory = directory
        self.context = context
        self._records = list(records)
        self._by_row = {r.source_row_number: r for r in self._records}
        self.state = StageState.REVIEWING
        self.pending_row: int | None = None

    # -- state machine -------------------------------------------------------

    def _transition(self, target: StageState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise ReconciliationStateError(f"cannot move from {self.state.value} to {target.value}")
        self.state = target

    def _require(self, *allowed: StageState) -> None:
        if self.state not in allowed:
            wanted = " or ".join(s.value for s in allowed)
            raise ReconciliationStateError(f"stage is {self.state.value}; operation needs {wanted}")

    def _pending(self) -> ReconciliationRecord:
        self._require(StageState.AWAITING_ENTITY_CREATION)
        if self.pending_row is None:
            raise ReconciliationStateError("no row is waiting for employee creation")
        return self.record(self.pending_row)

    # -- accessors -----------------------------------------------------------

    @property
    def records(self) -> tuple[ReconciliationRecord, ...]:
        return tuple(self._records)

    def record(self, row: int) -> ReconciliationRecord:
        try:
            return self._by_row[row]
        except KeyError:
            raise KeyError(f"no review record for row {row}") from None

    @property
    def issues(self) -> list[RowIssue]:
        return [i for r in self._records for i in r.issues]

    def ready_records(self) -> list[ReconciliationRecord]:
        return [r for r in self._records if r.state is RecordState.READY]

    def blocked_records(self) -> list[ReconciliationRecord]:
        return [r for r in self._records if r.state is not RecordState.READY]

    # -- review operations ---------------------------------------------------

    def edit_field(self, row: int, label: str, value: Any) -> ReconciliationRecord:
        """Set one raw field and re-derive the record.

        Editing the name column re-resolves employee and team with the same
        rules used at import time.
        """
        self._require(StageState.REVIEWING, StageState.AWAITING_ENTITY_CREATION)
        if row == self.pending_row:
            raise ReconciliationStateError(f"row {row} is waiting for employee creation")
        record = self.record(row)
        record.raw_fields[label] = value
        if label == self.variant.name_label:
            self.variant.apply_match(record, self.resolver.resolve(value))
        self.variant.revalidate(record, self.context)
        return record

    def begin_entity_creation(self, row: int) -> ReconciliationRecord:
        self._require(StageState.REVIEWING)
        record = self.record(row)
        if record.entity_id is not None:
            raise ReconciliationStateError(f"row {row} is already matched to {record.entity_id}")
        self._transition(StageState.AWAITING_ENTITY_CREATION)
        record.state = RecordState.AWAITING_ENTITY_CREATION
        self.pending_row = row
        return record

    async def create_entity(self, payload: NewEntityPayload) -> CreatedEntity:
        """Create the missing employee and back-fill the pending row.

        On failure the record is left untouched and the stage stays in
        AWAITING_ENTITY_CREATION; the collaborator's message is raised as
        EntityCreationError.
        """
        pending = self._pending()
        if not payload.name or not payload.contact or not payload.team_id:
            raise EntityCreationError("Name, email, and team are required.")
        try:
            created = await self.directory.create_entity(self.context.organization_id, payload)
        except EntityCreationError:
            raise
        except Exception as e:
            raise EntityCreationError(str(e) or "Failed to add employee.") from e

        record = pending
        record.entity_id = created.id
        record.team_id = created.team_id or payload.team_id
        record.candidates = ()
        record.state = RecordState.BLOCKED
        self.variant.revalidate(record, self.context)
        self.pending_row = None
        self._transition(StageState.REVIEWING)
        return created

    def cancel_entity_creation(self) -> None:
        record = self._pending()
        record.state = RecordState.BLOCKED
        self.variant.revalidate(record, self.context)
        self.pending_row = None
        self._transition(StageState.REVIEWING)

    def validate(self) -> list[RowIssue]:
        """Re-run validation on every record; returns all outstanding issues."""
        self._require(StageState.REVIEWING, StageState.AWAITING_ENTITY_CREATION)
        for record in self._records:
            self.variant.revalidate(record, self.context)
        return self.issues

    # -- hand-off ------------------------------------------------------------

    async def commit(
        self,
        engine: CommitEngine,
        mode: CommitMode,
        *,
        replace_filter: StoreFilter | None = None,
        on_row: Callable[[ReconciliationRecord, bool], None] | None = None,
    ) -> CommitOutcome:
        """Validate, then hand the ready records (only) to the commit engine."""
        if self.state is StageState.AWAITING_ENTITY_CREATION:
            raise ReconciliationStateError("finish or cancel employee creation before committing")
        self._require(StageState.REVIEWING)
        self.validate()
        blocked = [r.source_row_number for r in self.blocked_records()]
        if mode is CommitMode.REPLACE and blocked:
            # replace deletes the whole period scope, blocked rows included
            raise ReconciliationStateError(f"replace refused while rows are blocked (rows {blocked})")
        outcome = await engine.commit(
            self.ready_records(), mode, replace_filter=replace_filter, on_row=on_row
        )
        self._transition(StageState.COMMITTED)
        return outcome

    def discard(self) -> None:
        """Abandon the review; nothing has been persisted."""
        self._transition(StageState.DISCARDED)
        self.pending_row = None
        self._records.clear()
        self._by_row.clear()
