from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..db.directory import EntityCreationError
from ..models.entity import NewEntityPayload
from .reconciliation import ReconciliationStage

"""Scripted review edits for non-interactive runs.

Edits file (YAML)::

    edits:
      - {row: 4, field: "USER NAME", value: "Jane Smith"}
    create_entities:
      - {row: 7, name: "Ravi Patel", contact: "ravi@example.com", team_id: "t-2"}

Field edits are applied first, in file order, then employee creations. A
rejected creation is cancelled and reported; the record stays blocked.
"""

__all__ = [
    "EditsError",
    "FieldEdit",
    "EntityCreation",
    "ReviewEdits",
    "load_edits",
    "apply_edits",
]


class EditsError(Exception):
    pass


@dataclass(frozen=True)
class FieldEdit:
    row: int
    field: str
    value: Any


@dataclass(frozen=True)
class EntityCreation:
    row: int
    payload: NewEntityPayload


@dataclass(frozen=True)
class ReviewEdits:
    edits: list[FieldEdit] = field(default_factory=list)
    create_entities: list[EntityCreation] = field(default_factory=list)


def _require_row(item: dict[str, Any], where: str) -> int:
    row = item.get("row")
    if not isinstance(row, int) or isinstance(row, bool):
        raise EditsError(f"{where}: 'row' must be an integer")
    return row


def load_edits(path: Path) -> ReviewEdits:
    if not path.exists():
        raise EditsError(f"edits file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise EditsError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise EditsError("edits file root must be a mapping")
    unknown = set(data) - {"edits", "create_entities"}
    if unknown:
        raise EditsError(f"unknown keys in edits file: {sorted(unknown)}")

    edits: list[FieldEdit] = []
    for i, item in enumerate(data.get("edits") or [], start=1):
        if not isinstance(item, dict) or not item.get("field"):
            raise EditsError(f"edits[{i}]: needs row, field and value")
        edits.append(FieldEdit(row=_require_row(item, f"edits[{i}]"), field=str(item["field"]), value=item.get("value")))

    creations: list[EntityCreation] = []
    for i, item in enumerate(data.get("create_entities") or [], start=1):
        if not isinstance(item, dict):
            raise EditsError(f"create_entities[{i}]: must be a mapping")
        row = _require_row(item, f"create_entities[{i}]")
        payload = NewEntityPayload(
            name=str(item.get("name") or ""),
            contact=str(item.get("contact") or ""),
            team_id=str(item["team_id"]) if item.get("team_id") is not None else None,
            role=str(item.get("role") or "employee"),
            status=str(item.get("status") or "inactive"),
            position=str(item.get("position") or ""),
        )
        creations.append(EntityCreation(row=row, payload=payload))
    return ReviewEdits(edits=edits, create_entities=creations)


async def apply_edits(stage: ReconciliationStage, edits: ReviewEdits) -> list[str]:
    """Apply ``edits`` to the stage; returns one message per rejected creation."""
    for edit in edits.edits:
        stage.edit_field(edit.row, edit.field, edit.value)

    failures: list[str] = []
    for creation in edits.create_entities:
        stage.begin_entity_creation(creation.row)
        try:
            await stage.create_entity(creation.payload)
        except EntityCreationError as e:
            stage.cancel_entity_creation()
            failures.append(f"row {creation.row}: {e}")
    return failures
