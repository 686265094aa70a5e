# Shared pytest fixtures
from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from hr_import.db.directory import InMemoryEntityDirectory
from hr_import.logging.init import reset_logging
from hr_import.models.entity import DirectorySnapshot, EntityDirectoryEntry
from hr_import.services.resolver import EntityResolver

ORG = "acme"


@pytest.fixture(autouse=True)
def _fresh_logging():
    # handlers bind sys.stdout at setup time; rebuild per test so capsys sees output
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch, tmp_path: Path) -> Path:
    for name in ("config", "data", "logs"):
        (tmp_path / name).mkdir()
    for var in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture()
def sample_config_yaml() -> str:
    return """organization_id: acme
timezone: UTC
error_log_dir: ./logs
tables:
  attendance: attendance
  performance: performance_reports
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: hr
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def directory_entries() -> list[EntityDirectoryEntry]:
    return [
        EntityDirectoryEntry("emp-1", "A. Kumar", "team-1"),
        EntityDirectoryEntry("emp-2", "J Smith", "team-1"),
        EntityDirectoryEntry("emp-3", "J Smith", "team-2"),
        EntityDirectoryEntry("emp-4", "Priya Nair", "team-2"),
        EntityDirectoryEntry("emp-5", "Ravi Patel", None),
        EntityDirectoryEntry("emp-6", "John Smith", "team-1"),
        EntityDirectoryEntry("emp-9", "Old Hand", "team-1", active=False),
    ]


@pytest.fixture()
def snapshot(directory_entries) -> DirectorySnapshot:
    return DirectorySnapshot(directory_entries)


@pytest.fixture()
def resolver(snapshot) -> EntityResolver:
    return EntityResolver(snapshot)


@pytest.fixture()
def directory(directory_entries) -> InMemoryEntityDirectory:
    return InMemoryEntityDirectory({ORG: directory_entries}, teams={ORG: {"team-1", "team-2"}})


@pytest.fixture()
def write_xlsx(tmp_path: Path) -> Callable[..., Path]:
    def _write(rows: list[dict[str, Any]], name: str = "upload.xlsx") -> Path:
        path = tmp_path / name
        pd.DataFrame(rows).to_excel(path, index=False, engine="openpyxl")
        return path

    return _write


@pytest.fixture()
def perf_row() -> Callable[..., dict[str, Any]]:
    """Factory for one performance upload row (all 14 columns)."""

    def _row(name: str, **overrides: Any) -> dict[str, Any]:
        row: dict[str, Any] = {
            "Team": "Sourcing",
            "USER NAME": name,
            "Monster": 1,
            "Dice": 2,
            "LinkedIn Profiles viewed": 30,
            "LinkedIn InMails sent": 4,
            "Total Calls": 10,
            "Total Call Duration": "0:30:00",
            "Total Submissions": 2,
            "Total Interviews": 1,
            "Offers": 0,
            "Starts": 0,
            "Offered": "0",
            "Placed": "0",
        }
        row.update(overrides)
        return row

    return _row
