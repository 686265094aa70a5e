from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

import pandas as pd

from ..db.directory import EntityDirectory
from ..db.store import RecordStore, StoreFilter
from ..models.duration import Duration
from ..models.entity import DirectorySnapshot
from ..models.list_field import ListField
from ..models.period import PeriodAggregate, PeriodRecord, ReportingWindow, WindowKind
from ..models.records import DURATION_METRICS, LIST_METRICS, NUMERIC_METRICS, PerformanceMetrics
from .variants import PERFORMANCE, ImportVariant

"""Period rollup of stored monthly metrics.

PERIOD windows pass records through unchanged. Quarter, half and year windows
fold each employee's months in ascending order: counters add, call durations add
in seconds, Offered / Placed lists union. An employee with no stored month in
the window gets no row.
"""

__all__ = [
    "aggregate",
    "records_from_rows",
    "load_period_summary",
]


def aggregate(
    records: Iterable[PeriodRecord],
    window: ReportingWindow,
    *,
    skip_idle: bool = False,
) -> list[PeriodAggregate]:
    in_window = sorted(
        (r for r in records if window.contains(r.period_start)),
        key=lambda r: r.period_start,
    )

    if window.kind is WindowKind.PERIOD:
        result = [
            PeriodAggregate(
                entity_id=r.entity_id,
                window_start=window.start,
                window_end=window.end,
                display_name=r.display_name,
                team_id=r.team_id,
                metrics=r.metrics,
            )
            for r in in_window
        ]
    else:
        folded: dict[str, PeriodAggregate] = {}
        for r in in_window:
            current = folded.get(r.entity_id)
            if current is None:
                # first month seeds display name and team
                folded[r.entity_id] = PeriodAggregate(
                    entity_id=r.entity_id,
                    window_start=window.start,
                    window_end=window.end,
                    display_name=r.display_name,
                    team_id=r.team_id,
                    metrics=r.metrics,
                )
            else:
                folded[r.entity_id] = PeriodAggregate(
                    entity_id=current.entity_id,
                    window_start=current.window_start,
                    window_end=current.window_end,
                    display_name=current.display_name,
                    team_id=current.team_id,
                    metrics=current.metrics.merge(r.metrics),
                    source_records=current.source_records + 1,
                )
        result = list(folded.values())

    if skip_idle:
        result = [a for a in result if not a.metrics.is_idle()]
    return result


def _to_date(value: Any) -> date:
    if isinstance(value, date):
        return value if type(value) is date else value.date()  # type: ignore[attr-defined]
    return pd.Timestamp(value).date()


def _metrics_from_row(row: Mapping[str, Any]) -> PerformanceMetrics:
    values: dict[str, Any] = {}
    for name in NUMERIC_METRICS:
        values[name] = int(row.get(name) or 0)
    for name in DURATION_METRICS:
        values[name] = Duration.parse(row.get(name))
    for name in LIST_METRICS:
        values[name] = ListField.parse(row.get(name))
    return PerformanceMetrics(**values)


def records_from_rows(
    rows: Iterable[Mapping[str, Any]],
    snapshot: DirectorySnapshot,
    variant: ImportVariant = PERFORMANCE,
) -> list[PeriodRecord]:
    """Turn stored performance rows into PeriodRecords.

    Rows of employees missing from the (active-only) snapshot are dropped, so
    inactive employees never appear in a summary.
    """
    table = variant.table
    records: list[PeriodRecord] = []
    for row in rows:
        entity_id = row.get(table.entity_column)
        entry = snapshot.get(entity_id) if entity_id is not None else None
        if entry is None:
            continue
        team_id = row.get(table.team_column) if table.team_column else None
        records.append(
            PeriodRecord(
                entity_id=entry.id,
                team_id=team_id if team_id is not None else entry.team_id,
                display_name=entry.display_name,
                period_start=_to_date(row[table.date_column]),
                metrics=_metrics_from_row(row),
            )
        )
    return records


async def load_period_summary(
    store: RecordStore,
    directory: EntityDirectory,
    organization_id: str,
    window: ReportingWindow,
    *,
    team_id: str | None = None,
    entity_id: str | None = None,
    skip_idle: bool = False,
    variant: ImportVariant = PERFORMANCE,
) -> list[PeriodAggregate]:
    """Read the window's stored months for one organization and roll them up."""
    flt = StoreFilter(
        organization_id=organization_id,
        entity_id=entity_id,
        team_id=team_id,
        date_from=window.start,
        date_to=window.end,
    )
    rows = await store.select_where(variant.table, flt)
    snapshot = DirectorySnapshot(await directory.list_entities(organization_id))
    return aggregate(records_from_rows(rows, snapshot, variant), window, skip_idle=skip_idle)
