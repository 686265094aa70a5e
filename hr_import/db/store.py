from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol

"""Persistent store collaborator.

The commit engine and the period aggregator depend only on three operations per
table: delete-by-filter, upsert-by-natural-key and bulk-read-by-filter. Filters
express equality on organization / entity / team and a date range.
"""

__all__ = [
    "StoreError",
    "TableSpec",
    "StoreFilter",
    "RecordStore",
    "InMemoryRecordStore",
]


class StoreError(Exception):
    """Persistence failure (constraint violation, transient store error)."""


@dataclass(frozen=True)
class TableSpec:
    name: str
    org_column: str
    entity_column: str
    date_column: str
    key_columns: tuple[str, ...]  # natural key
    team_column: str | None = None


@dataclass(frozen=True)
class StoreFilter:
    organization_id: str
    entity_id: str | None = None
    team_id: str | None = None
    date_from: date | None = None
    date_to: date | None = None

    def matches(self, table: TableSpec, row: Mapping[str, Any]) -> bool:
        if row.get(table.org_column) != self.organization_id:
            return False
        if self.entity_id is not None and row.get(table.entity_column) != self.entity_id:
            return False
        if self.team_id is not None:
            if table.team_column is None or row.get(table.team_column) != self.team_id:
                return False
        day = row.get(table.date_column)
        if self.date_from is not None and (day is None or day < self.date_from):
            return False
        if self.date_to is not None and (day is None or day > self.date_to):
            return False
        return True


class RecordStore(Protocol):
    async def delete_where(self, table: TableSpec, flt: StoreFilter) -> int:
        raise NotImplementedError

    async def upsert(self, table: TableSpec, row: Mapping[str, Any]) -> None:
        """Insert ``row`` or overwrite the stored row with the same natural key."""
        raise NotImplementedError

    async def select_where(self, table: TableSpec, flt: StoreFilter) -> list[dict[str, Any]]:
        raise NotImplementedError


class InMemoryRecordStore:
    """Dict-backed store used by tests, ``--dry-run`` and mock mode.

    ``fail_when`` lets callers inject write failures: it receives the row about
    to be upserted and returns an error message (or None to let it through).
    """

    def __init__(self, fail_when: Callable[[Mapping[str, Any]], str | None] | None = None) -> None:
        self._tables: dict[str, dict[tuple[Any, ...], dict[str, Any]]] = {}
        self.fail_when = fail_when
        self.writes = 0

    def _table(self, table: TableSpec) -> dict[tuple[Any, ...], dict[str, Any]]:
        return self._tables.setdefault(table.name, {})

    async def delete_where(self, table: TableSpec, flt: StoreFilter) -> int:
        await asyncio.sleep(0)
        rows = self._table(table)
        doomed = [k for k, r in rows.items() if flt.matches(table, r)]
        for k in doomed:
            del rows[k]
        return len(doomed)

    async def upsert(self, table: TableSpec, row: Mapping[str, Any]) -> None:
        await asyncio.sleep(0)
        if self.fail_when is not None:
            message = self.fail_when(row)
            if message:
                raise StoreError(message)
        missing = [c for c in table.key_columns if row.get(c) is None]
        if missing:
            raise StoreError(f"null value in natural key column(s) {missing}")
        key = tuple(row[c] for c in table.key_columns)
        self._table(table)[key] = dict(row)
        self.writes += 1

    async def select_where(self, table: TableSpec, flt: StoreFilter) -> list[dict[str, Any]]:
        await asyncio.sleep(0)
        return [dict(r) for r in self._table(table).values() if flt.matches(table, r)]

    def dump(self, table: TableSpec) -> list[dict[str, Any]]:
        return [dict(r) for r in self._table(table).values()]
