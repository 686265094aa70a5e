from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import time, timedelta
from typing import Any

"""Duration value for elapsed-time metrics (e.g. total call duration).

Canonical rendering is ``H:MM:SS`` with minutes/seconds in [0, 59] and an
unbounded hour part. Arithmetic is always done in whole seconds.
"""

__all__ = [
    "Duration",
    "DurationParseError",
]

_DURATION_RE = re.compile(r"^(\d+):([0-5]\d):([0-5]\d)$")


class DurationParseError(ValueError):
    """Raised when a cell value cannot be read as a duration."""


@dataclass(frozen=True, order=True)
class Duration:
    """Non-negative elapsed time stored as whole seconds."""
    seconds: int = 0

    def __post_init__(self) -> None:
        if self.seconds < 0:
            raise DurationParseError(f"duration cannot be negative: {self.seconds}")

    @classmethod
    def parse(cls, value: Any) -> Duration:
        """Coerce a raw cell value.

        Accepts ``H:MM:SS`` / ``HH:MM:SS`` strings, ``datetime.time`` (Excel time
        cells), ``timedelta`` and blanks (-> zero).
        """
        if value is None:
            return cls(0)
        if isinstance(value, Duration):
            return value
        if isinstance(value, timedelta):
            total = value.total_seconds()
            if total < 0 or total != int(total):
                raise DurationParseError(f"invalid duration: {value}")
            return cls(int(total))
        if isinstance(value, time):
            return cls(value.hour * 3600 + value.minute * 60 + value.second)
        text = str(value).strip()
        if text == "":
            return cls(0)
        m = _DURATION_RE.match(text)
        if not m:
            raise DurationParseError(f"invalid duration '{text}' (expected H:MM:SS)")
        h, mi, s = (int(g) for g in m.groups())
        return cls(h * 3600 + mi * 60 + s)

    def __add__(self, other: object) -> Duration:
        if not isinstance(other, Duration):
            return NotImplemented
        return Duration(self.seconds + other.seconds)

    def render(self) -> str:
        h, rem = divmod(self.seconds, 3600)
        m, s = divmod(rem, 60)
        return f"{h}:{m:02d}:{s:02d}"

    def __str__(self) -> str:
        return self.render()

    @classmethod
    def total(cls, values: list[Duration]) -> Duration:
        return cls(sum(v.seconds for v in values))
