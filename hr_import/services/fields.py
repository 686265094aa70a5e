from __future__ import annotations

import math
import numbers
from datetime import date, datetime
from typing import Any

import pandas as pd

from ..models.duration import Duration, DurationParseError
from ..models.list_field import ListField

"""Per-type cell coercion used when normalizing review records.

Every parser raises FieldError with a human-readable message; callers turn that
into an INVALID_FIELD issue for the row instead of aborting the session.
"""

__all__ = [
    "FieldError",
    "parse_count",
    "parse_duration",
    "parse_list",
    "parse_timestamp",
    "parse_day",
]


class FieldError(ValueError):
    """Raised when a raw cell does not parse under its field type."""


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def parse_count(value: Any, label: str) -> int:
    """Non-negative integer counter. Blank cells count as 0."""
    if _blank(value):
        return 0
    if isinstance(value, bool):
        raise FieldError(f"{label}: expected a whole number, got {value!r}")
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise FieldError(f"{label}: expected a whole number, got {value}")
        number = int(value)
    else:
        text = str(value).strip().replace(",", "")
        try:
            as_float = float(text)
        except ValueError:
            raise FieldError(f"{label}: '{value}' is not a number") from None
        if not as_float.is_integer():
            raise FieldError(f"{label}: expected a whole number, got {value}")
        number = int(as_float)
    if number < 0:
        raise FieldError(f"{label}: must not be negative, got {number}")
    return number


def parse_duration(value: Any, label: str) -> Duration:
    try:
        return Duration.parse(None if _blank(value) else value)
    except DurationParseError as e:
        raise FieldError(f"{label}: {e}") from None


def parse_list(value: Any) -> ListField:
    return ListField.parse(None if _blank(value) else value)


# Excel 1900 date system; day 60 (the phantom 1900-02-29) is absorbed by the epoch
EXCEL_EPOCH = pd.Timestamp("1899-12-30")
EXCEL_MAX_SERIAL = 2958465  # 9999-12-31


def _from_excel_serial(value: numbers.Real, label: str) -> datetime:
    serial = float(value)
    if not 1 <= serial <= EXCEL_MAX_SERIAL:
        raise FieldError(f"{label}: invalid date/time '{value}' (not an Excel date serial)")
    ts = (EXCEL_EPOCH + pd.to_timedelta(serial, unit="D")).round("s")
    return ts.to_pydatetime()


def parse_timestamp(value: Any, label: str, timezone: str | None = None) -> datetime:
    """Parse a clock event into a naive local datetime.

    Timezone-aware values are converted to ``timezone`` first; naive values are
    taken to already be in the exporter's local time.
    """
    if _blank(value):
        raise FieldError(f"{label}: value is missing")
    if isinstance(value, bool):
        raise FieldError(f"{label}: invalid date/time '{value}'")
    if isinstance(value, numbers.Real):
        return _from_excel_serial(value, label)
    try:
        ts = pd.Timestamp(value)
    except (ValueError, TypeError) as e:
        raise FieldError(f"{label}: invalid date/time '{value}'") from e
    if ts is pd.NaT:
        raise FieldError(f"{label}: invalid date/time '{value}'")
    if ts.tzinfo is not None:
        if timezone:
            ts = ts.tz_convert(timezone)
        ts = ts.tz_localize(None)
    return ts.to_pydatetime()


def parse_day(value: Any, label: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_timestamp(value, label).date()
