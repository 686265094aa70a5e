from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""RawRow model: one spreadsheet data row before any type coercion."""

__all__ = [
    "RawRow",
]


@dataclass(frozen=True)
class RawRow:
    """Logical representation of a single data row as read from the file.

    ``row_number`` is the 1-based row number in the source sheet (the header
    row counts), so error messages point at the line a user sees in Excel.
    """
    row_number: int
    values: dict[str, Any] = field(default_factory=dict)  # column label -> raw cell value

    def get(self, label: str, default: Any = None) -> Any:
        return self.values.get(label, default)

    def is_blank(self, label: str) -> bool:
        value = self.values.get(label)
        return value is None or (isinstance(value, str) and value.strip() == "")
