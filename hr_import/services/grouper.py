from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import NamedTuple

from ..models.entity import MatchResult
from ..models.raw_row import RawRow
from ..models.reconciliation import ErrorKind, RowIssue
from .fields import FieldError, parse_timestamp
from .resolver import EntityResolver, normalize_name

"""Temporal grouping of biometric clock events (attendance only).

Every RawRow is one clock event. Events of the same employee on the same
calendar day collapse into one group whose check-in is the earliest event and
whose check-out is the latest.
"""

__all__ = [
    "GroupKey",
    "EventGroup",
    "GroupingResult",
    "group_events",
]


class GroupKey(NamedTuple):
    """Composite grouping key.

    Matched rows group by entity id; rows that did not resolve to exactly one
    employee group by their normalized name so they can still be reviewed.
    """
    entity_id: str | None
    unresolved_name: str | None
    work_date: date


@dataclass
class EventGroup:
    key: GroupKey
    display_name: str  # name as written in the first row of the group
    match: MatchResult
    timestamps: list[datetime] = field(default_factory=list)
    source_rows: list[int] = field(default_factory=list)

    @property
    def check_in(self) -> datetime:
        return min(self.timestamps)

    @property
    def check_out(self) -> datetime:
        return max(self.timestamps)

    @property
    def first_row(self) -> int:
        return min(self.source_rows)


@dataclass
class GroupingResult:
    groups: list[EventGroup]
    errors: list[RowIssue]


def group_events(
    rows: Sequence[RawRow],
    resolver: EntityResolver,
    *,
    name_label: str = "Name",
    timestamp_label: str = "Log Date",
    timezone: str | None = None,
) -> GroupingResult:
    """Resolve and group clock events by (employee, calendar day).

    Rows missing a name or carrying an unparseable timestamp are excluded from
    grouping and reported as INVALID_FIELD errors with their row number.
    """
    groups: dict[GroupKey, EventGroup] = {}
    errors: list[RowIssue] = []

    for row in rows:
        if row.is_blank(name_label):
            errors.append(
                RowIssue(row.row_number, ErrorKind.INVALID_FIELD, f"missing {name_label}", field=name_label)
            )
            continue
        try:
            stamp = parse_timestamp(row.get(timestamp_label), timestamp_label, timezone)
        except FieldError as e:
            errors.append(RowIssue(row.row_number, ErrorKind.INVALID_FIELD, str(e), field=timestamp_label))
            continue

        name = str(row.get(name_label)).strip()
        match = resolver.resolve(name)
        if match.matched:
            key = GroupKey(match.entity_id, None, stamp.date())
        else:
            key = GroupKey(None, normalize_name(name), stamp.date())

        group = groups.get(key)
        if group is None:
            group = EventGroup(key=key, display_name=name, match=match)
            groups[key] = group
        group.timestamps.append(stamp)
        group.source_rows.append(row.row_number)

    return GroupingResult(groups=list(groups.values()), errors=errors)
