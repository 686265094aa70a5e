from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any

import pandas as pd

from ..models.raw_row import RawRow

"""Spreadsheet ingestion: uploaded file -> ordered RawRow list.

- 先頭の非空行をヘッダ行として扱い、以降をデータ行とする
- 全セル空の行は捨てる
- 型変換はここでは行わない (下流の variant 側で列ごとに実施)
- 期待列の欠落は情報扱い (missing_columns に記録、例外にはしない)

Delimited text (CSV/TSV) and workbook formats (xlsx/xls) are supported; only
the first sheet of a workbook is read.
"""

__all__ = [
    "MalformedFileError",
    "ParsedSheet",
    "read_spreadsheet",
    "read_raw_frame",
    "normalize_frame",
]

WORKBOOK_SUFFIXES = {".xlsx", ".xlsm", ".xls"}
DELIMITED_SUFFIXES = {".csv", ".txt", ".tsv"}
_ZIP_MAGIC = b"PK\x03\x04"
_OLE_MAGIC = b"\xd0\xcf\x11\xe0"


class MalformedFileError(Exception):
    """Raised when the file cannot be decoded or holds no header / data rows."""


@dataclass
class ParsedSheet:
    columns: list[str]
    rows: list[RawRow]
    missing_columns: set[str] = field(default_factory=set)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _clean(value: Any) -> Any:
    if _is_empty(value):
        return None
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value


def _header_labels(raw: list[Any]) -> list[str]:
    labels: list[str] = []
    seen: dict[str, int] = {}
    for i, cell in enumerate(raw):
        label = "" if _is_empty(cell) else str(cell).strip()
        if not label:
            label = f"Column_{i + 1}"
        count = seen.get(label, 0) + 1
        seen[label] = count
        labels.append(label if count == 1 else f"{label}_{count}")
    return labels


def _sniff_delimiter(text: str, suffix: str) -> str:
    if suffix == ".tsv":
        return "\t"
    sample = "\n".join(line for line in text.splitlines()[:20] if line.strip())
    try:
        return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
    except csv.Error:
        return ","


def _looks_like_workbook(head: bytes) -> bool:
    return head.startswith(_ZIP_MAGIC) or head.startswith(_OLE_MAGIC)


def read_raw_frame(source: Path | IO[bytes] | IO[str], *, file_name: str | None = None) -> pd.DataFrame:
    """Read the first sheet of ``source`` into a header-less DataFrame of raw cells.

    Parameters
    ----------
    source: ファイルパス、バイナリまたはテキストのファイルハンドル
    file_name: ハンドル指定時の元ファイル名 (拡張子で形式判定)
    """
    name = file_name or (source.name if isinstance(source, Path) else getattr(source, "name", None))
    suffix = Path(str(name)).suffix.lower() if name else ""

    if isinstance(source, Path):
        if not source.exists():
            raise MalformedFileError(f"file not found: {source}")
        payload: bytes | str = source.read_bytes()
    else:
        payload = source.read()

    if isinstance(payload, str):
        workbook = False
    elif suffix in WORKBOOK_SUFFIXES:
        workbook = True
    elif suffix in DELIMITED_SUFFIXES:
        workbook = False
    else:
        workbook = _looks_like_workbook(payload[:8])

    try:
        if workbook:
            buffer = io.BytesIO(payload if isinstance(payload, bytes) else payload.encode("utf-8"))
            # keep_default_na=False: "NA" / "None" are legitimate names, not NULL
            return pd.read_excel(buffer, sheet_name=0, header=None, dtype=object, keep_default_na=False)
        text = payload if isinstance(payload, str) else payload.decode("utf-8-sig")
        if not text.strip():
            raise MalformedFileError("file is empty")
        return pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=object,
            keep_default_na=False,
            sep=_sniff_delimiter(text, suffix),
            skip_blank_lines=False,  # keep line numbers aligned with the file
        )
    except MalformedFileError:
        raise
    except Exception as e:
        raise MalformedFileError(f"could not read {name or 'upload'}: {e}") from e


def normalize_frame(df: pd.DataFrame, expected_columns: Iterable[str] | None = None) -> ParsedSheet:
    """Turn a header-less frame into header labels + RawRows.

    Steps:
    1. Skip leading rows until the first non-empty one; that row is the header
    2. Remaining non-empty rows become RawRows numbered by source row (1-based)
    3. Record which expected labels are absent (informational only)
    """
    header_index: int | None = None
    for idx in range(df.shape[0]):
        if not all(_is_empty(v) for v in df.iloc[idx].tolist()):
            header_index = idx
            break
    if header_index is None:
        raise MalformedFileError("no header row found")

    columns = _header_labels(df.iloc[header_index].tolist())
    rows: list[RawRow] = []
    for idx in range(header_index + 1, df.shape[0]):
        cells = df.iloc[idx].tolist()
        if all(_is_empty(v) for v in cells):
            continue
        values = {col: _clean(val) for col, val in zip(columns, cells, strict=False)}
        rows.append(RawRow(row_number=idx + 1, values=values))

    if not rows:
        raise MalformedFileError("no data rows found below the header")

    missing: set[str] = set()
    if expected_columns is not None:
        missing = set(expected_columns) - set(columns)
    return ParsedSheet(columns=columns, rows=rows, missing_columns=missing)


def read_spreadsheet(
    source: Path | IO[bytes] | IO[str],
    *,
    file_name: str | None = None,
    expected_columns: Iterable[str] | None = None,
) -> ParsedSheet:
    """Decode an uploaded file into an ordered list of RawRow."""
    df = read_raw_frame(source, file_name=file_name)
    return normalize_frame(df, expected_columns=expected_columns)
