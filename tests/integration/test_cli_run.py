from __future__ import annotations

import asyncio
import json
from datetime import date
from pathlib import Path

import pytest

from hr_import.cli.__main__ import main
from hr_import.db.store import InMemoryRecordStore
from hr_import.services.variants import ATTENDANCE, PERFORMANCE


@pytest.fixture()
def mock_db(monkeypatch, write_config, directory):
    """Run the CLI in mock mode against one shared in-memory store."""
    store = InMemoryRecordStore()
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    monkeypatch.setattr("hr_import.cli.__main__._mock_collaborators", lambda: (store, directory))
    return store


def _summary(out: str) -> str:
    lines = [line for line in out.splitlines() if line.startswith("SUMMARY ")]
    assert len(lines) == 1, out
    return lines[0]


def _error_logs(workdir: Path) -> list[dict]:
    records = []
    for path in sorted((workdir / "logs").glob("errors-*.log")):
        records.extend(json.loads(line) for line in path.read_text(encoding="utf-8").splitlines())
    return records


def test_attendance_import_all_committed(mock_db, write_xlsx, temp_workdir, capsys):
    path = write_xlsx(
        [
            {"Name": "A. Kumar", "Log Date": "2024-03-01 09:02"},
            {"Name": "A. Kumar", "Log Date": "2024-03-01 18:41"},
            {"Name": "Priya Nair", "Log Date": "2024-03-01 09:30"},
        ]
    )
    code = main(["attendance", str(path)])
    out = capsys.readouterr().out

    assert code == 0
    line = _summary(out)
    assert "variant=attendance mode=upsert records=2 succeeded=2 failed=0 blocked=0" in line
    assert len(mock_db.dump(ATTENDANCE.table)) == 2
    assert _error_logs(temp_workdir) == []


def test_performance_import_with_blocked_row_exits_partial(mock_db, write_xlsx, perf_row, temp_workdir, capsys):
    path = write_xlsx([perf_row("A. Kumar"), perf_row("Meera Iyer")], name="march.xlsx")
    code = main(["performance", str(path), "--year", "2024", "--month", "3"])
    out = capsys.readouterr().out

    assert code == 2
    assert "succeeded=1 failed=0 blocked=1 unmatched=1 ambiguous=0" in _summary(out)
    assert "WARN row 3: User 'Meera Iyer' not found." in out
    (record,) = _error_logs(temp_workdir)
    assert (record["file"], record["variant"], record["row"], record["error_type"]) == (
        "march.xlsx",
        "performance",
        3,
        "UNRESOLVED_ENTITY",
    )
    stored = mock_db.dump(PERFORMANCE.table)
    assert [(r["user_id"], r["report_date"]) for r in stored] == [("emp-1", date(2024, 3, 1))]


def test_edits_file_unblocks_rows(mock_db, write_xlsx, perf_row, temp_workdir, capsys):
    path = write_xlsx([perf_row("J Smith"), perf_row("Meera Iyer")])
    edits = temp_workdir / "edits.yml"
    edits.write_text(
        """edits:
  - {row: 2, field: "USER NAME", value: "John Smith"}
create_entities:
  - {row: 3, name: "Meera Iyer", contact: "meera@example.com", team_id: team-2}
""",
        encoding="utf-8",
    )
    code = main(["performance", str(path), "--year", "2024", "--month", "3", "--edits", str(edits)])

    assert code == 0
    assert "succeeded=2 failed=0 blocked=0" in _summary(capsys.readouterr().out)


def test_persistence_failures_are_logged_and_exit_partial(
    monkeypatch, write_config, directory, write_xlsx, perf_row, temp_workdir, capsys
):
    store = InMemoryRecordStore(fail_when=lambda row: "deadlock detected" if row["user_id"] == "emp-4" else None)
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    monkeypatch.setattr("hr_import.cli.__main__._mock_collaborators", lambda: (store, directory))
    path = write_xlsx([perf_row("A. Kumar"), perf_row("Priya Nair")])

    code = main(["performance", str(path), "--year", "2024", "--month", "3"])
    out = capsys.readouterr().out

    assert code == 2
    assert "succeeded=1 failed=1 blocked=0" in _summary(out)
    assert "ERROR row 3 (Priya Nair (row 3)): deadlock detected" in out
    (record,) = _error_logs(temp_workdir)
    assert record["error_type"] == "PERSISTENCE_FAILURE"
    assert record["row"] == 3


def test_dry_run_writes_nothing(mock_db, write_xlsx, perf_row, capsys):
    path = write_xlsx([perf_row("A. Kumar")])
    code = main(["performance", str(path), "--year", "2024", "--month", "3", "--mode", "replace", "--dry-run"])

    assert code == 0
    assert "mode=dry-run records=1 succeeded=0 failed=0 blocked=0" in _summary(capsys.readouterr().out)
    assert mock_db.dump(PERFORMANCE.table) == []


def test_summary_rolls_up_imported_months(mock_db, write_xlsx, perf_row, capsys):
    for month in (1, 2):
        path = write_xlsx([perf_row("A. Kumar", **{"Total Calls": 7})], name=f"m{month}.xlsx")
        assert main(["performance", str(path), "--year", "2024", "--month", str(month)]) == 0
    capsys.readouterr()

    code = main(["summary", "--year", "2024", "--quarter", "1"])
    out = capsys.readouterr().out

    assert code == 0
    assert "INFO quarter 2024-01-01..2024-03-31: 1 employees" in out
    table_line = next(line for line in out.splitlines() if "A. Kumar" in line)
    assert "14" in table_line.split()


def test_inspect_prints_header_and_rows(write_xlsx, perf_row, capsys):
    path = write_xlsx([perf_row("A. Kumar"), perf_row("Priya Nair")], name="peek.xlsx")
    code = main(["inspect", str(path)])
    out = capsys.readouterr().out

    assert code == 0
    assert "FILE: peek.xlsx" in out
    assert "data_rows=2" in out
    assert "row 2:" in out


def test_replace_with_blocked_row_keeps_stored_month(mock_db, write_xlsx, perf_row, capsys):
    table = PERFORMANCE.table
    for user in ("emp-1", "emp-4"):
        asyncio.run(
            mock_db.upsert(
                table,
                {"user_id": user, "team_id": "team-1", "company_id": "acme", "report_date": date(2024, 3, 1), "total_calls": 5},
            )
        )
    path = write_xlsx([perf_row("A. Kumar", **{"Total Calls": 8}), perf_row("Priya Nair", **{"Total Calls": "abc"})])

    code = main(["performance", str(path), "--year", "2024", "--month", "3", "--mode", "replace"])
    out = capsys.readouterr().out

    assert code == 2
    assert "WARN replace mode: 1 blocked rows, falling back to upsert" in out
    assert "mode=upsert records=2 succeeded=1 failed=0 blocked=1" in _summary(out)
    stored = {r["user_id"]: r["total_calls"] for r in mock_db.dump(table)}
    assert stored == {"emp-1": 8, "emp-4": 5}


def test_summary_line_counts_unmatched_and_ambiguous_names(mock_db, write_xlsx, capsys):
    path = write_xlsx(
        [
            {"Name": "A. Kumar", "Log Date": "2024-03-01 09:02"},
            {"Name": "J Smith", "Log Date": "2024-03-01 09:10"},
            {"Name": "Ghost", "Log Date": "2024-03-01 09:20"},
        ]
    )
    code = main(["attendance", str(path)])

    assert code == 2
    line = _summary(capsys.readouterr().out)
    assert "records=3 succeeded=1 failed=0 blocked=2 unmatched=1 ambiguous=1" in line
