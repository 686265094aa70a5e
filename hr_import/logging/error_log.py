from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.commit_outcome import CommitOutcome
from ..models.error_record import ErrorRecord
from ..models.reconciliation import ErrorKind, RowIssue

"""Error log buffering (JSON Lines).

- 固定スキーマ (timestamp, file, variant, row, error_type, message)、追加キー禁止
- 実行ごとに `<error_log_dir>/errors-YYYYMMDD-HHMMSS.log` (UTC) を生成 (必要時のみ)
- バッファに溜めて flush() で一括追記
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "DEFAULT_LOG_DIR",
]

DEFAULT_LOG_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer of ErrorRecords for one import run.

    The file path is fixed on first access; serial use only.
    """

    def __init__(self, log_dir: Path | str = DEFAULT_LOG_DIR, *, file: str = "", variant: str = "") -> None:
        self.log_dir = Path(log_dir)
        self.file = file
        self.variant = variant
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self.log_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def add(self, row: int, kind: ErrorKind, message: str) -> None:
        self.append(ErrorRecord.create(self.file, self.variant, row, kind.value, message))

    def add_issues(self, issues: list[RowIssue]) -> None:
        for issue in issues:
            self.add(issue.row, issue.kind, issue.message)

    def add_outcome(self, outcome: CommitOutcome) -> None:
        for err in outcome.per_row_errors:
            self.add(err.row, ErrorKind.PERSISTENCE_FAILURE, f"{err.identity}: {err.message}")

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the log file; returns the path written, if any."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
