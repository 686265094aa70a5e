from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from enum import Enum

from .records import PerformanceMetrics

"""Reporting windows and period records for the rollup.

Windows are calendar based: a single month (PERIOD), a quarter (1-4), a
half-year (1-2) or the full year.
"""

__all__ = [
    "WindowKind",
    "ReportingWindow",
    "PeriodRecord",
    "PeriodAggregate",
]


class WindowKind(Enum):
    PERIOD = "period"
    QUARTER = "quarter"
    HALF = "half"
    YEAR = "year"


_INDEX_RANGE = {
    WindowKind.PERIOD: 12,
    WindowKind.QUARTER: 4,
    WindowKind.HALF: 2,
    WindowKind.YEAR: 1,
}
_MONTHS_PER_UNIT = {
    WindowKind.PERIOD: 1,
    WindowKind.QUARTER: 3,
    WindowKind.HALF: 6,
    WindowKind.YEAR: 12,
}


@dataclass(frozen=True)
class ReportingWindow:
    kind: WindowKind
    year: int
    index: int = 1  # month for PERIOD, quarter / half number otherwise

    def __post_init__(self) -> None:
        upper = _INDEX_RANGE[self.kind]
        if not 1 <= self.index <= upper:
            raise ValueError(f"{self.kind.value} index must be in 1..{upper}, got {self.index}")

    @classmethod
    def month(cls, year: int, month: int) -> ReportingWindow:
        return cls(WindowKind.PERIOD, year, month)

    @classmethod
    def quarter(cls, year: int, quarter: int) -> ReportingWindow:
        return cls(WindowKind.QUARTER, year, quarter)

    @classmethod
    def half(cls, year: int, half: int) -> ReportingWindow:
        return cls(WindowKind.HALF, year, half)

    @classmethod
    def full_year(cls, year: int) -> ReportingWindow:
        return cls(WindowKind.YEAR, year, 1)

    @property
    def first_month(self) -> int:
        return (self.index - 1) * _MONTHS_PER_UNIT[self.kind] + 1

    @property
    def last_month(self) -> int:
        return self.first_month + _MONTHS_PER_UNIT[self.kind] - 1

    @property
    def start(self) -> date:
        return date(self.year, self.first_month, 1)

    @property
    def end(self) -> date:
        last = self.last_month
        return date(self.year, last, calendar.monthrange(self.year, last)[1])

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def months(self) -> list[ReportingWindow]:
        """Split into single-month windows."""
        return [ReportingWindow.month(self.year, m) for m in range(self.first_month, self.last_month + 1)]


@dataclass(frozen=True)
class PeriodRecord:
    """One stored month of metrics for one employee."""
    entity_id: str
    team_id: str | None
    display_name: str
    period_start: date
    metrics: PerformanceMetrics


@dataclass(frozen=True)
class PeriodAggregate:
    entity_id: str
    window_start: date
    window_end: date
    display_name: str
    team_id: str | None
    metrics: PerformanceMetrics
    source_records: int = 1

    @property
    def key(self) -> tuple[str, date, date]:
        return (self.entity_id, self.window_start, self.window_end)
