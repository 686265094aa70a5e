from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import IO

from ..db.directory import EntityDirectory
from ..db.store import StoreFilter
from ..excel.reader import ParsedSheet, read_spreadsheet
from ..models.entity import DirectorySnapshot
from ..models.reconciliation import ReconciliationRecord, RowIssue
from .fields import FieldError, parse_day
from .reconciliation import ReconciliationStage
from .resolver import EntityResolver
from .variants import AttendanceVariant, ImportVariant, VariantContext

"""Import session: one uploaded file from ingestion to the review stage.

The directory snapshot is fetched once when the session opens and is never
refreshed; sessions share no mutable state with each other.
"""

__all__ = [
    "ImportSession",
    "open_session",
]


@dataclass
class ImportSession:
    variant: ImportVariant
    context: VariantContext
    file_name: str
    sheet: ParsedSheet
    resolver: EntityResolver
    stage: ReconciliationStage
    row_errors: list[RowIssue] = field(default_factory=list)  # rows excluded before review

    @property
    def records(self) -> tuple[ReconciliationRecord, ...]:
        return self.stage.records

    @property
    def blocked_count(self) -> int:
        return len(self.stage.blocked_records()) + len(self.row_errors)

    @property
    def unmatched_count(self) -> int:
        return sum(1 for r in self.stage.blocked_records() if r.entity_id is None and not r.candidates)

    @property
    def ambiguous_count(self) -> int:
        return sum(1 for r in self.stage.blocked_records() if r.entity_id is None and r.candidates)

    def default_replace_filter(self) -> StoreFilter:
        """Period scope that replace mode deletes before inserting.

        performance: the imported month. attendance: the span of dates present
        in the reviewed records.
        """
        org = self.context.organization_id
        period = self.context.period_start
        if period is not None:
            last = calendar.monthrange(period.year, period.month)[1]
            return StoreFilter(organization_id=org, date_from=period, date_to=period.replace(day=last))

        days: list[date] = []
        label = self.variant.date_label if isinstance(self.variant, AttendanceVariant) else None
        for record in self.stage.records:
            if label is None:
                break
            try:
                days.append(parse_day(record.raw_fields.get(label), label))
            except FieldError:
                continue
        if not days:
            raise ValueError("cannot derive a replace scope: no dated records in this session")
        return StoreFilter(organization_id=org, date_from=min(days), date_to=max(days))


async def open_session(
    source: Path | IO[bytes] | IO[str],
    variant: ImportVariant,
    directory: EntityDirectory,
    organization_id: str,
    *,
    file_name: str | None = None,
    timezone: str | None = None,
    period_start: date | None = None,
) -> ImportSession:
    """Ingest ``source`` and build the review stage.

    Raises MalformedFileError when the file cannot be read; every other problem
    is collected per row on the returned session.
    """
    if period_start is not None:
        period_start = period_start.replace(day=1)
    context = VariantContext(organization_id=organization_id, timezone=timezone, period_start=period_start)

    name = file_name or (source.name if isinstance(source, Path) else getattr(source, "name", "upload"))
    sheet = read_spreadsheet(source, file_name=file_name, expected_columns=variant.expected_columns)

    snapshot = DirectorySnapshot(await directory.list_entities(organization_id))
    resolver = EntityResolver(snapshot)
    records, row_errors = variant.build_records(sheet.rows, resolver, context)
    stage = ReconciliationStage(variant, resolver, directory, context, records)
    return ImportSession(
        variant=variant,
        context=context,
        file_name=str(name),
        sheet=sheet,
        resolver=resolver,
        stage=stage,
        row_errors=list(row_errors),
    )
