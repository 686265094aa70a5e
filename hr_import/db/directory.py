from __future__ import annotations

import asyncio
import itertools
from typing import Protocol

from ..models.entity import CreatedEntity, EntityDirectoryEntry, NewEntityPayload

"""Entity directory collaborator (employees of one organization)."""

__all__ = [
    "EntityCreationError",
    "EntityDirectory",
    "InMemoryEntityDirectory",
]


class EntityCreationError(Exception):
    """Raised when the directory rejects a new employee; carries its message."""


class EntityDirectory(Protocol):
    async def list_entities(self, organization_id: str) -> list[EntityDirectoryEntry]:
        raise NotImplementedError

    async def create_entity(self, organization_id: str, payload: NewEntityPayload) -> CreatedEntity:
        raise NotImplementedError


class InMemoryEntityDirectory:
    def __init__(
        self,
        entries: dict[str, list[EntityDirectoryEntry]] | None = None,
        teams: dict[str, set[str]] | None = None,
    ) -> None:
        self._entries: dict[str, list[EntityDirectoryEntry]] = {
            org: list(items) for org, items in (entries or {}).items()
        }
        self._ids = itertools.count(1)
        # when given, creation is refused for teams outside the organization
        self.known_teams = teams

    async def list_entities(self, organization_id: str) -> list[EntityDirectoryEntry]:
        await asyncio.sleep(0)
        return list(self._entries.get(organization_id, []))

    async def create_entity(self, organization_id: str, payload: NewEntityPayload) -> CreatedEntity:
        await asyncio.sleep(0)
        if self.known_teams is not None and payload.team_id not in self.known_teams.get(organization_id, set()):
            raise EntityCreationError(f"team '{payload.team_id}' does not exist")
        existing = self._entries.setdefault(organization_id, [])
        if any(e.display_name == payload.name and e.active for e in existing) and payload.is_active:
            raise EntityCreationError(f"an active employee named '{payload.name}' already exists")
        entity_id = f"emp-new-{next(self._ids)}"
        existing.append(
            EntityDirectoryEntry(
                id=entity_id,
                display_name=payload.name,
                team_id=payload.team_id,
                active=payload.is_active,
            )
        )
        return CreatedEntity(id=entity_id, team_id=payload.team_id)
