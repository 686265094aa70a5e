from __future__ import annotations

from collections import defaultdict
from typing import Any

from ..models.entity import DirectorySnapshot, EntityDirectoryEntry, MatchResult, MatchStatus

"""Entity resolution: free-text employee name -> canonical id.

Matching is exact after trimming, whitespace collapsing and lower-casing; there
is no fuzzy matching. Two active employees may share a display name, in which
case the row is AMBIGUOUS and must be fixed during review.
"""

__all__ = [
    "normalize_name",
    "EntityResolver",
]


def normalize_name(value: Any) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split()).lower()


class EntityResolver:
    """Resolves names against one immutable directory snapshot."""

    def __init__(self, snapshot: DirectorySnapshot) -> None:
        self._snapshot = snapshot
        index: dict[str, list[EntityDirectoryEntry]] = defaultdict(list)
        for entry in snapshot:
            index[normalize_name(entry.display_name)].append(entry)
        self._index = dict(index)

    @property
    def snapshot(self) -> DirectorySnapshot:
        return self._snapshot

    def candidates(self, name: Any) -> list[EntityDirectoryEntry]:
        key = normalize_name(name)
        if not key:
            return []
        return list(self._index.get(key, ()))

    def resolve(self, name: Any) -> MatchResult:
        found = self.candidates(name)
        if not found:
            return MatchResult(MatchStatus.UNMATCHED)
        if len(found) > 1:
            return MatchResult(MatchStatus.AMBIGUOUS, candidates=tuple(e.id for e in found))
        entry = found[0]
        # team comes from the employee's assignment, never from a second name match
        return MatchResult(MatchStatus.MATCHED, entity_id=entry.id, team_id=entry.team_id)
