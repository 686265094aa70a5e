from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

Row ``-1`` is a sentinel for file-level or batch-level errors where no single
source row is responsible (malformed file, failed replace-mode delete).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: uploaded file name
        variant: import variant (attendance / performance)
        row: source row number (1-based), -1 when unknown
        error_type: ErrorKind value in UPPER_SNAKE_CASE
        message: human-readable description
    """
    timestamp: str
    file: str
    variant: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, variant: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            variant=variant,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # no extra keys: the key set is fixed by the dataclass
        return json.dumps(asdict(self), ensure_ascii=False)
