from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock

import pytest

from hr_import.db.store import InMemoryRecordStore, StoreError, StoreFilter
from hr_import.models.commit_outcome import CommitMode
from hr_import.models.raw_row import RawRow
from hr_import.services.commit import CommitEngine
from hr_import.services.reconciliation import ReconciliationStateError
from hr_import.services.variants import PERFORMANCE, VariantContext

MARCH = VariantContext(organization_id="acme", period_start=date(2024, 3, 1))
MARCH_SCOPE = StoreFilter(organization_id="acme", date_from=date(2024, 3, 1), date_to=date(2024, 3, 31))


@pytest.fixture()
def five_records(resolver, perf_row):
    names = ["A. Kumar", "Priya Nair", "John Smith", "A. Kumar", "Priya Nair"]
    rows = [RawRow(i + 1, perf_row(n, **{"Total Calls": i})) for i, n in enumerate(names)]
    records, _ = PERFORMANCE.build_records(rows, resolver, MARCH)
    assert all(r.is_ready for r in records)
    return records


def _fail_on_calls(calls: int):
    return lambda row: "duplicate key value violates unique constraint" if row["total_calls"] == calls else None


@pytest.mark.asyncio
async def test_failed_row_is_reported_and_batch_continues(five_records):
    store = InMemoryRecordStore(fail_when=_fail_on_calls(2))  # row 3
    outcome = await CommitEngine(store, PERFORMANCE, MARCH).commit(five_records, CommitMode.UPSERT)

    assert (outcome.succeeded, outcome.failed) == (4, 1)
    assert [e.row for e in outcome.per_row_errors] == [3]
    assert outcome.per_row_errors[0].identity == "John Smith (row 3)"
    assert "duplicate key" in outcome.per_row_errors[0].message
    assert outcome.attempted == 5


@pytest.mark.asyncio
async def test_upsert_is_last_write_wins_within_a_batch(five_records):
    store = InMemoryRecordStore()
    await CommitEngine(store, PERFORMANCE, MARCH).commit(five_records, CommitMode.UPSERT)
    stored = {r["user_id"]: r["total_calls"] for r in store.dump(PERFORMANCE.table)}
    assert stored == {"emp-1": 3, "emp-4": 4, "emp-6": 2}


@pytest.mark.asyncio
async def test_upsert_twice_equals_once(five_records):
    once = InMemoryRecordStore()
    twice = InMemoryRecordStore()
    engine_once = CommitEngine(once, PERFORMANCE, MARCH)
    engine_twice = CommitEngine(twice, PERFORMANCE, MARCH)
    await engine_once.commit(five_records, CommitMode.UPSERT)
    await engine_twice.commit(five_records, CommitMode.UPSERT)
    await engine_twice.commit(five_records, CommitMode.UPSERT)
    key = lambda r: r["user_id"]  # noqa: E731
    assert sorted(once.dump(PERFORMANCE.table), key=key) == sorted(twice.dump(PERFORMANCE.table), key=key)


@pytest.mark.asyncio
async def test_replace_then_read_returns_exactly_reviewed_set(five_records):
    store = InMemoryRecordStore()
    table = PERFORMANCE.table
    await store.upsert(table, {"user_id": "emp-99", "report_date": date(2024, 3, 1), "company_id": "acme", "total_calls": 1})
    await store.upsert(table, {"user_id": "emp-99", "report_date": date(2024, 2, 1), "company_id": "acme", "total_calls": 1})
    await store.upsert(table, {"user_id": "emp-98", "report_date": date(2024, 3, 1), "company_id": "other", "total_calls": 1})

    outcome = await CommitEngine(store, PERFORMANCE, MARCH).commit(
        five_records, CommitMode.REPLACE, replace_filter=MARCH_SCOPE
    )

    assert outcome.failed == 0
    in_scope = await store.select_where(table, MARCH_SCOPE)
    assert sorted(r["user_id"] for r in in_scope) == ["emp-1", "emp-4", "emp-6"]
    # rows outside the period or organization survive
    assert len(store.dump(table)) == 5


@pytest.mark.asyncio
async def test_replace_delete_failure_writes_nothing(five_records):
    store = AsyncMock()
    store.delete_where.side_effect = StoreError("permission denied")
    seen = []
    outcome = await CommitEngine(store, PERFORMANCE, MARCH).commit(
        five_records, CommitMode.REPLACE, replace_filter=MARCH_SCOPE, on_row=lambda r, ok: seen.append(ok)
    )
    store.upsert.assert_not_awaited()
    assert (outcome.succeeded, outcome.failed) == (0, 5)
    assert outcome.per_row_errors[0].row == -1
    assert "permission denied" in outcome.per_row_errors[0].message
    assert seen == [False] * 5


@pytest.mark.asyncio
async def test_replace_without_scope_is_refused(five_records):
    with pytest.raises(ValueError):
        await CommitEngine(InMemoryRecordStore(), PERFORMANCE, MARCH).commit(five_records, CommitMode.REPLACE)


@pytest.mark.asyncio
async def test_record_without_entity_is_refused_before_any_write(five_records):
    five_records[2].entity_id = None
    store = InMemoryRecordStore()
    with pytest.raises(ReconciliationStateError):
        await CommitEngine(store, PERFORMANCE, MARCH).commit(five_records, CommitMode.UPSERT)
    assert store.writes == 0


@pytest.mark.asyncio
async def test_rows_written_sequentially_in_review_order(five_records):
    store = AsyncMock()
    order = []
    store.upsert.side_effect = lambda table, row: order.append(row["total_calls"])
    progress = []
    await CommitEngine(store, PERFORMANCE, MARCH).commit(
        five_records, CommitMode.UPSERT, on_row=lambda r, ok: progress.append((r.source_row_number, ok))
    )
    assert order == [0, 1, 2, 3, 4]
    assert progress == [(1, True), (2, True), (3, True), (4, True), (5, True)]
