from __future__ import annotations

from collections.abc import Callable, Sequence

from ..db.store import RecordStore, StoreError, StoreFilter
from ..models.commit_outcome import CommitMode, CommitOutcome, RowError
from ..models.reconciliation import ReconciliationRecord
from .reconciliation import ReconciliationStateError
from .variants import ImportVariant, VariantContext

"""Commit engine: persists reviewed records under a conflict-resolution mode.

Rows are written one at a time in review order, each write awaited before the
next. A failed row is recorded and the batch continues; earlier writes are not
rolled back. The outcome is tallied in memory and never re-read from the store.

REPLACE issues a single delete over the period scope before inserting. When that
delete fails nothing is written and every row is reported failed, together with
one row ``-1`` error describing the delete failure.
"""

__all__ = [
    "CommitEngine",
    "REPLACE_FAILED_IDENTITY",
]

REPLACE_FAILED_IDENTITY = "replace scope"


class CommitEngine:
    def __init__(self, store: RecordStore, variant: ImportVariant, context: VariantContext) -> None:
        self.store = store
        self.variant = variant
        self.context = context

    async def commit(
        self,
        records: Sequence[ReconciliationRecord],
        mode: CommitMode,
        *,
        replace_filter: StoreFilter | None = None,
        on_row: Callable[[ReconciliationRecord, bool], None] | None = None,
    ) -> CommitOutcome:
        unresolved = [r.source_row_number for r in records if r.entity_id is None]
        if unresolved:
            raise ReconciliationStateError(f"records without an employee cannot be committed (rows {unresolved})")

        table = self.variant.table
        outcome = CommitOutcome()

        if mode is CommitMode.REPLACE:
            if replace_filter is None:
                raise ValueError("replace mode needs the period scope to delete")
            try:
                await self.store.delete_where(table, replace_filter)
            except StoreError as e:
                outcome.per_row_errors.append(_batch_error(f"delete before replace failed: {e}"))
                for record in records:
                    outcome.record_failure(
                        record.source_row_number,
                        self.variant.display_identity(record),
                        "not written: delete before replace failed",
                    )
                    if on_row is not None:
                        on_row(record, False)
                return outcome

        for record in records:
            identity = self.variant.display_identity(record)
            try:
                row = self.variant.to_store_row(record, self.context)
                await self.store.upsert(table, row)
            except (StoreError, ValueError) as e:
                outcome.record_failure(record.source_row_number, identity, str(e))
                ok = False
            else:
                outcome.record_success()
                ok = True
            if on_row is not None:
                on_row(record, ok)
        return outcome


def _batch_error(message: str) -> RowError:
    return RowError(row=-1, identity=REPLACE_FAILED_IDENTITY, message=message)
