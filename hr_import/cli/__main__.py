from __future__ import annotations

import argparse
import asyncio
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any

import pandas as pd
import psycopg2
from dotenv import load_dotenv

from hr_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, ImportConfig, load_config
from hr_import.db.directory import EntityDirectory, InMemoryEntityDirectory
from hr_import.db.postgres import PostgresEntityDirectory, PostgresRecordStore, connect
from hr_import.db.store import InMemoryRecordStore, RecordStore, StoreError
from hr_import.excel.reader import MalformedFileError, read_spreadsheet
from hr_import.logging.error_log import ErrorLogBuffer
from hr_import.logging.init import log_summary, set_debug, setup_logging
from hr_import.models.duration import DurationParseError
from hr_import.models.commit_outcome import CommitMode, CommitOutcome
from hr_import.models.period import PeriodAggregate, ReportingWindow
from hr_import.models.reconciliation import ErrorKind
from hr_import.services.aggregator import load_period_summary
from hr_import.services.commit import CommitEngine
from hr_import.services.edits import EditsError, apply_edits, load_edits
from hr_import.services.progress import ProgressTracker
from hr_import.services.reconciliation import ReconciliationStateError
from hr_import.services.session import open_session
from hr_import.services.summary import render_summary_line
from hr_import.services.variants import get_variant

"""CLI entrypoint.

Subcommands:
- attendance FILE      biometric log import (grouped per employee-day)
- performance FILE     monthly metrics import (--year / --month)
- summary              period rollup of stored performance reports
- inspect FILE         print header and first rows, then exit

Exit codes: 0 everything committed, 2 partial (blocked or failed rows),
1 fatal (config, malformed file, database unavailable).
DISABLE_DB_CONNECT=1 runs against in-memory collaborators (mock mode).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


class DatabaseUnavailable(Exception):
    pass


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; .env values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _mock_collaborators() -> tuple[RecordStore, EntityDirectory]:
    return InMemoryRecordStore(), InMemoryEntityDirectory()


@contextmanager
def _collaborators(cfg: ImportConfig) -> Iterator[tuple[RecordStore, EntityDirectory, str]]:
    """Yield (store, directory, db_mode) for the run."""
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        store, directory = _mock_collaborators()
        yield store, directory, "mock"
        return

    try:
        conn = connect(cfg.database)
    except psycopg2.Error as e:
        raise DatabaseUnavailable(str(e).strip()) from e
    try:
        yield PostgresRecordStore(conn), PostgresEntityDirectory(conn), "live"
    finally:
        conn.close()


def _add_import_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("file", type=Path, help="Uploaded spreadsheet (.xlsx / .xls / .csv)")
    p.add_argument("--mode", choices=[m.value for m in CommitMode], default=CommitMode.UPSERT.value)
    p.add_argument("--edits", type=Path, default=None, help="YAML file with review edits")
    p.add_argument("--dry-run", action="store_true", help="Review and report without writing")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="hr-import", description="HR bulk import and period summaries")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Config YAML path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--org", default=None, help="Organization id (overrides config)")
    sub = p.add_subparsers(dest="command", required=True)

    att = sub.add_parser("attendance", help="Import biometric attendance logs")
    _add_import_args(att)

    perf = sub.add_parser("performance", help="Import monthly performance metrics")
    _add_import_args(perf)
    perf.add_argument("--year", type=int, required=True)
    perf.add_argument("--month", type=int, required=True, choices=range(1, 13), metavar="1-12")

    summ = sub.add_parser("summary", help="Roll up stored performance reports")
    summ.add_argument("--year", type=int, required=True)
    window = summ.add_mutually_exclusive_group(required=True)
    window.add_argument("--month", type=int, choices=range(1, 13), metavar="1-12")
    window.add_argument("--quarter", type=int, choices=range(1, 5), metavar="1-4")
    window.add_argument("--half", type=int, choices=range(1, 3), metavar="1-2")
    window.add_argument("--full-year", action="store_true")
    summ.add_argument("--team", default=None, help="Team id filter")
    summ.add_argument("--entity", default=None, help="Employee id filter")
    summ.add_argument("--skip-idle", action="store_true", help="Hide rows with no calls, submissions or call time")

    insp = sub.add_parser("inspect", help="Print header and first rows then exit")
    insp.add_argument("file", type=Path)
    return p.parse_args(argv)


def _window_from_args(args: argparse.Namespace) -> ReportingWindow:
    if args.month is not None:
        return ReportingWindow.month(args.year, args.month)
    if args.quarter is not None:
        return ReportingWindow.quarter(args.year, args.quarter)
    if args.half is not None:
        return ReportingWindow.half(args.year, args.half)
    return ReportingWindow.full_year(args.year)


def _inspect(path: Path) -> int:
    logger = setup_logging()
    try:
        sheet = read_spreadsheet(path)
    except MalformedFileError as e:
        logger.error(f"inspect: {e}")
        return EXIT_FATAL
    print(f"FILE: {path.name}")
    print(f"  columns={sheet.columns}")
    print(f"  data_rows={len(sheet.rows)}")
    for r in sheet.rows[:3]:
        # datetime cells are not JSON friendly; print isoformat
        safe = {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in r.values.items()}
        print(f"  row {r.row_number}: {safe}")
    return EXIT_SUCCESS_ALL


async def _run_import(
    args: argparse.Namespace,
    cfg: ImportConfig,
    org: str,
    store: RecordStore,
    directory: EntityDirectory,
) -> int:
    logger = setup_logging()
    started = time.perf_counter()
    variant = get_variant(args.command, cfg.tables)
    errors = ErrorLogBuffer(cfg.error_log_dir, file=args.file.name, variant=variant.name)
    period_start = date(args.year, args.month, 1) if args.command == "performance" else None

    try:
        session = await open_session(
            args.file,
            variant,
            directory,
            org,
            file_name=args.file.name,
            timezone=cfg.timezone,
            period_start=period_start,
        )
    except MalformedFileError as e:
        logger.error(f"{args.file.name}: {e}")
        errors.add(-1, ErrorKind.MALFORMED_FILE, str(e))
        errors.flush()
        return EXIT_FATAL
    except StoreError as e:
        logger.error(f"employee directory: {e}")
        return EXIT_FATAL

    if session.sheet.missing_columns:
        logger.warning(f"missing columns: {sorted(session.sheet.missing_columns)}")
    logger.info(f"{session.file_name}: {len(session.sheet.rows)} rows -> {len(session.records)} records")

    stage = session.stage
    if args.edits is not None:
        try:
            failures = await apply_edits(stage, load_edits(args.edits))
        except (EditsError, ReconciliationStateError, KeyError) as e:
            logger.error(f"edits: {e}")
            return EXIT_FATAL
        for message in failures:
            logger.error(f"add employee failed: {message}")

    stage.validate()
    errors.add_issues(session.row_errors)
    for issue in session.row_errors:
        logger.warning(f"row {issue.row}: {issue.message}")
    for record in stage.blocked_records():
        errors.add_issues(record.issues)
        for issue in record.issues:
            logger.warning(f"row {issue.row}: {issue.message}")

    mode = CommitMode(args.mode)
    ready = stage.ready_records()
    if args.dry_run:
        logger.info(f"dry-run: {len(ready)} records would be written ({mode.value})")
        outcome = CommitOutcome()
        mode_label = "dry-run"
    else:
        if mode is CommitMode.REPLACE and session.blocked_count > 0:
            logger.warning(
                f"replace mode: {session.blocked_count} blocked rows, falling back to upsert "
                "so their stored records are kept"
            )
            mode = CommitMode.UPSERT
        elif mode is CommitMode.REPLACE and not ready:
            logger.warning("replace mode: nothing ready to commit, existing records left untouched")
            mode = CommitMode.UPSERT
        replace_filter = session.default_replace_filter() if mode is CommitMode.REPLACE else None
        mode_label = mode.value
        engine = CommitEngine(store, variant, session.context)
        with ProgressTracker(len(ready)) as progress:
            outcome = await stage.commit(engine, mode, replace_filter=replace_filter, on_row=progress.on_row)
        errors.add_outcome(outcome)
        for err in outcome.per_row_errors:
            logger.error(f"row {err.row} ({err.identity}): {err.message}")

    log_path = errors.flush()
    if log_path is not None:
        logger.info(f"error log: {log_path}")

    line = render_summary_line(
        variant.name,
        mode_label,
        len(session.records),
        outcome,
        session.blocked_count,
        time.perf_counter() - started,
        unmatched=session.unmatched_count,
        ambiguous=session.ambiguous_count,
    )
    log_summary(line[len("SUMMARY "):])

    if outcome.failed > 0 or session.blocked_count > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _aggregates_frame(aggregates: list[PeriodAggregate]) -> pd.DataFrame:
    rows: list[dict[str, Any]] = []
    for a in aggregates:
        m = a.metrics
        rows.append(
            {
                "Team": a.team_id,
                "USER NAME": a.display_name,
                "Monster": m.monster,
                "Dice": m.dice,
                "LinkedIn Profiles viewed": m.linkedin_profiles_viewed,
                "LinkedIn InMails sent": m.linkedin_inmails_sent,
                "Total Calls": m.total_calls,
                "Total Call Duration": m.total_call_duration.render(),
                "Total Submissions": m.total_submissions,
                "Total Interviews": m.total_interviews,
                "Offers": m.offers,
                "Starts": m.starts,
                "Offered": m.offered.render() or "",
                "Placed": m.placed.render() or "",
            }
        )
    return pd.DataFrame(rows)


async def _run_summary(
    args: argparse.Namespace,
    cfg: ImportConfig,
    org: str,
    store: RecordStore,
    directory: EntityDirectory,
) -> int:
    logger = setup_logging()
    window = _window_from_args(args)
    variant = get_variant("performance", cfg.tables)
    try:
        aggregates = await load_period_summary(
            store,
            directory,
            org,
            window,
            team_id=args.team,
            entity_id=args.entity,
            skip_idle=args.skip_idle,
            variant=variant,
        )
    except (StoreError, DurationParseError) as e:
        logger.error(f"summary: {e}")
        return EXIT_FATAL
    logger.info(f"{window.kind.value} {window.start}..{window.end}: {len(aggregates)} employees")
    if aggregates:
        print(_aggregates_frame(aggregates).to_string(index=False))
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む ([] はテストからの明示指定)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    if args.command == "inspect":
        return _inspect(args.file)

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    org = args.org or cfg.organization_id

    runner = _run_summary if args.command == "summary" else _run_import
    try:
        with _collaborators(cfg) as (store, directory, db_mode):
            logger.debug(f"db mode={db_mode}")
            return asyncio.run(runner(args, cfg, org, store, directory))
    except DatabaseUnavailable as e:
        logger.error(f"database unavailable: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
