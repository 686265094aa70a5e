from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

"""Entity directory models (employees, their team assignment) and match results."""

__all__ = [
    "EntityDirectoryEntry",
    "DirectorySnapshot",
    "MatchStatus",
    "MatchResult",
    "NewEntityPayload",
    "CreatedEntity",
]


@dataclass(frozen=True)
class EntityDirectoryEntry:
    id: str
    display_name: str
    team_id: str | None
    active: bool = True


class DirectorySnapshot:
    """Read-only view of the active directory taken at session start.

    Inactive entries are filtered out on construction; the snapshot is never
    refreshed while the owning import session is alive.
    """

    def __init__(self, entries: Iterable[EntityDirectoryEntry]) -> None:
        self._entries: tuple[EntityDirectoryEntry, ...] = tuple(e for e in entries if e.active)
        self._by_id = {e.id: e for e in self._entries}

    @property
    def entries(self) -> tuple[EntityDirectoryEntry, ...]:
        return self._entries

    def get(self, entity_id: str) -> EntityDirectoryEntry | None:
        return self._by_id.get(entity_id)

    def names(self) -> dict[str, str]:
        return {e.id: e.display_name for e in self._entries}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)


class MatchStatus(Enum):
    MATCHED = "matched"
    UNMATCHED = "unmatched"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class MatchResult:
    status: MatchStatus
    entity_id: str | None = None
    team_id: str | None = None
    candidates: tuple[str, ...] = ()  # only populated for AMBIGUOUS

    @property
    def matched(self) -> bool:
        return self.status is MatchStatus.MATCHED


@dataclass(frozen=True)
class NewEntityPayload:
    """Minimal employee payload for on-the-fly creation during review."""
    name: str
    contact: str  # email
    team_id: str | None
    role: str = "employee"
    status: str = "inactive"
    position: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass(frozen=True)
class CreatedEntity:
    id: str
    team_id: str | None
