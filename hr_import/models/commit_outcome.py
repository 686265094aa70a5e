from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Commit result models.

CommitOutcome is produced once per commit invocation and handed back to the
caller for display; it is never persisted and never re-derived from the store.
"""

__all__ = [
    "CommitMode",
    "RowError",
    "CommitOutcome",
]


class CommitMode(Enum):
    """Conflict-resolution mode for a commit.

    - REPLACE: delete every stored record in the target period scope, then
      insert the reviewed set
    - UPSERT: write each reviewed record at its natural key, leave others alone
    """
    REPLACE = "replace"
    UPSERT = "upsert"


@dataclass(frozen=True)
class RowError:
    row: int  # source row number; -1 for batch-level failures
    identity: str  # display identity, e.g. "A. Kumar on 2024-03-01"
    message: str


@dataclass
class CommitOutcome:
    succeeded: int = 0
    failed: int = 0
    per_row_errors: list[RowError] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.succeeded + self.failed

    def record_success(self) -> None:
        self.succeeded += 1

    def record_failure(self, row: int, identity: str, message: str) -> None:
        self.failed += 1
        self.per_row_errors.append(RowError(row=row, identity=identity, message=message))
