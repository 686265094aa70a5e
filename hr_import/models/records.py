from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from .duration import Duration
from .list_field import ListField

"""Typed field schemas for the two import variants.

AttendanceFields is one derived clock-in/clock-out record per employee-day;
PerformanceMetrics is one month of recruiter activity counters.
"""

__all__ = [
    "AttendanceFields",
    "PerformanceMetrics",
    "NUMERIC_METRICS",
    "DURATION_METRICS",
    "LIST_METRICS",
]

DEFAULT_ATTENDANCE_STATUS = "present"
DEFAULT_ATTENDANCE_NOTES = "Imported from biometric device"


@dataclass(frozen=True)
class AttendanceFields:
    work_date: date
    check_in: datetime
    check_out: datetime
    status: str = DEFAULT_ATTENDANCE_STATUS
    notes: str = DEFAULT_ATTENDANCE_NOTES


@dataclass(frozen=True)
class PerformanceMetrics:
    monster: int = 0
    dice: int = 0
    linkedin_profiles_viewed: int = 0
    linkedin_inmails_sent: int = 0
    total_calls: int = 0
    total_call_duration: Duration = field(default_factory=Duration)
    total_submissions: int = 0
    total_interviews: int = 0
    offers: int = 0
    starts: int = 0
    offered: ListField = field(default_factory=ListField)
    placed: ListField = field(default_factory=ListField)

    def merge(self, other: PerformanceMetrics) -> PerformanceMetrics:
        """Fold ``other`` into this one: sum counters and durations, union lists."""
        values: dict[str, object] = {}
        for name in NUMERIC_METRICS:
            values[name] = getattr(self, name) + getattr(other, name)
        for name in DURATION_METRICS:
            values[name] = getattr(self, name) + getattr(other, name)
        for name in LIST_METRICS:
            values[name] = getattr(self, name).union(getattr(other, name))
        return PerformanceMetrics(**values)  # type: ignore[arg-type]

    def is_idle(self) -> bool:
        return (
            self.total_calls == 0
            and self.total_submissions == 0
            and self.total_call_duration.seconds == 0
        )


NUMERIC_METRICS: tuple[str, ...] = (
    "monster",
    "dice",
    "linkedin_profiles_viewed",
    "linkedin_inmails_sent",
    "total_calls",
    "total_submissions",
    "total_interviews",
    "offers",
    "starts",
)
DURATION_METRICS: tuple[str, ...] = ("total_call_duration",)
LIST_METRICS: tuple[str, ...] = ("offered", "placed")
