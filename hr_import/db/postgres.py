from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping
from typing import Any

import psycopg2
from psycopg2 import sql
from psycopg2.extras import RealDictCursor

from ..config.loader import DatabaseConfig
from ..models.entity import CreatedEntity, EntityDirectoryEntry, NewEntityPayload
from .directory import EntityCreationError
from .store import StoreError, StoreFilter, TableSpec

"""PostgreSQL implementations of the store and directory collaborators.

psycopg2 is blocking, so every call runs in a worker thread via
``asyncio.to_thread``; callers await them one at a time. Each write is its own
transaction (commit on success, rollback on error) so a failed row never undoes
the rows written before it.

接続情報の解決優先順位 (.env は CLI 側で override 読み込み済み):
    1. DATABASE_URL / PGDSN (DSN 全体)
    2. config の database.dsn
    3. 個別 PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    4. config の database セクション (不足分のフォールバック)
"""

__all__ = [
    "EMPLOYEES_TABLE",
    "build_dsn",
    "connect",
    "upsert_statement",
    "PostgresRecordStore",
    "PostgresEntityDirectory",
]

EMPLOYEES_TABLE = "employees"


def build_dsn(db_cfg: DatabaseConfig) -> str:
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def connect(db_cfg: DatabaseConfig) -> Any:  # pragma: no cover (needs a live database)
    """Open a connection with explicit transactions; the caller closes it."""
    conn = psycopg2.connect(build_dsn(db_cfg))
    conn.autocommit = False
    return conn


def _where(table: TableSpec, flt: StoreFilter) -> tuple[sql.Composable, list[Any]]:
    clauses: list[sql.Composable] = [sql.SQL("{} = %s").format(sql.Identifier(table.org_column))]
    params: list[Any] = [flt.organization_id]
    if flt.entity_id is not None:
        clauses.append(sql.SQL("{} = %s").format(sql.Identifier(table.entity_column)))
        params.append(flt.entity_id)
    if flt.team_id is not None:
        if table.team_column is None:
            raise StoreError(f"table {table.name} has no team column to filter on")
        clauses.append(sql.SQL("{} = %s").format(sql.Identifier(table.team_column)))
        params.append(flt.team_id)
    if flt.date_from is not None:
        clauses.append(sql.SQL("{} >= %s").format(sql.Identifier(table.date_column)))
        params.append(flt.date_from)
    if flt.date_to is not None:
        clauses.append(sql.SQL("{} <= %s").format(sql.Identifier(table.date_column)))
        params.append(flt.date_to)
    return sql.SQL(" AND ").join(clauses), params


def upsert_statement(table: TableSpec, columns: list[str]) -> sql.Composed:
    """INSERT .. ON CONFLICT (natural key) DO UPDATE for every non-key column."""
    updates = [c for c in columns if c not in table.key_columns]
    stmt = sql.SQL("INSERT INTO {table} ({cols}) VALUES ({vals}) ON CONFLICT ({keys})").format(
        table=sql.Identifier(table.name),
        cols=sql.SQL(", ").join(map(sql.Identifier, columns)),
        vals=sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        keys=sql.SQL(", ").join(map(sql.Identifier, table.key_columns)),
    )
    if not updates:
        return stmt + sql.SQL(" DO NOTHING")
    return stmt + sql.SQL(" DO UPDATE SET {}").format(
        sql.SQL(", ").join(
            sql.SQL("{c} = EXCLUDED.{c}").format(c=sql.Identifier(c)) for c in updates
        )
    )


class PostgresRecordStore:
    def __init__(self, conn: Any) -> None:
        self.conn = conn

    def _run(self, query: sql.Composable, params: list[Any], *, fetch: bool = False) -> Any:
        try:
            with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                result = [dict(r) for r in cur.fetchall()] if fetch else cur.rowcount
            self.conn.commit()
            return result
        except psycopg2.Error as e:
            self.conn.rollback()
            raise StoreError(e.pgerror or str(e)) from e

    async def delete_where(self, table: TableSpec, flt: StoreFilter) -> int:
        where, params = _where(table, flt)
        query = sql.SQL("DELETE FROM {} WHERE ").format(sql.Identifier(table.name)) + where
        return await asyncio.to_thread(self._run, query, params)

    async def upsert(self, table: TableSpec, row: Mapping[str, Any]) -> None:
        columns = list(row.keys())
        await asyncio.to_thread(self._run, upsert_statement(table, columns), [row[c] for c in columns])

    async def select_where(self, table: TableSpec, flt: StoreFilter) -> list[dict[str, Any]]:
        where, params = _where(table, flt)
        query = (
            sql.SQL("SELECT * FROM {} WHERE ").format(sql.Identifier(table.name))
            + where
            + sql.SQL(" ORDER BY {}").format(sql.Identifier(table.date_column))
        )
        return await asyncio.to_thread(self._run, query, params, fetch=True)


class PostgresEntityDirectory:
    def __init__(self, conn: Any, table: str = EMPLOYEES_TABLE) -> None:
        self.conn = conn
        self.table = table

    def _list(self, organization_id: str) -> list[EntityDirectoryEntry]:
        query = sql.SQL(
            "SELECT id, name, team_id, is_active FROM {} WHERE company_id = %s ORDER BY name, id"
        ).format(sql.Identifier(self.table))
        try:
            with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, [organization_id])
                rows = cur.fetchall()
            self.conn.commit()
        except psycopg2.Error as e:
            self.conn.rollback()
            raise StoreError(e.pgerror or str(e)) from e
        return [
            EntityDirectoryEntry(
                id=str(r["id"]),
                display_name=r["name"],
                team_id=str(r["team_id"]) if r["team_id"] is not None else None,
                active=bool(r["is_active"]),
            )
            for r in rows
        ]

    def _create(self, organization_id: str, payload: NewEntityPayload) -> CreatedEntity:
        query = sql.SQL(
            "INSERT INTO {} (name, email, team_id, role, position, is_active, company_id) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s) RETURNING id, team_id"
        ).format(sql.Identifier(self.table))
        params = [
            payload.name,
            payload.contact,
            payload.team_id,
            payload.role,
            payload.position,
            payload.is_active,
            organization_id,
        ]
        try:
            with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                row = cur.fetchone()
            self.conn.commit()
        except psycopg2.Error as e:
            self.conn.rollback()
            raise EntityCreationError(e.pgerror or str(e)) from e
        if row is None:
            raise EntityCreationError("Failed to add employee.")
        team_id = row["team_id"]
        return CreatedEntity(id=str(row["id"]), team_id=str(team_id) if team_id is not None else None)

    async def list_entities(self, organization_id: str) -> list[EntityDirectoryEntry]:
        return await asyncio.to_thread(self._list, organization_id)

    async def create_entity(self, organization_id: str, payload: NewEntityPayload) -> CreatedEntity:
        return await asyncio.to_thread(self._create, organization_id, payload)
