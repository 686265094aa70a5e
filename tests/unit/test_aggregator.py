from __future__ import annotations

from datetime import date

import pytest

from hr_import.db.directory import InMemoryEntityDirectory
from hr_import.db.store import InMemoryRecordStore
from hr_import.models.duration import Duration
from hr_import.models.entity import EntityDirectoryEntry
from hr_import.models.list_field import ListField
from hr_import.models.period import PeriodRecord, ReportingWindow
from hr_import.models.records import NUMERIC_METRICS, PerformanceMetrics
from hr_import.services.aggregator import aggregate, load_period_summary
from hr_import.services.variants import PERFORMANCE


def _record(entity: str, month: int, *, team: str = "team-1", name: str | None = None, **metrics) -> PeriodRecord:
    return PeriodRecord(
        entity_id=entity,
        team_id=team,
        display_name=name or entity,
        period_start=date(2024, month, 1),
        metrics=PerformanceMetrics(**metrics),
    )


@pytest.fixture()
def year_of_records() -> list[PeriodRecord]:
    records = []
    for month in range(1, 13):
        records.append(
            _record(
                "emp-1",
                month,
                total_calls=month * 10,
                offers=month % 3,
                total_call_duration=Duration(month * 61),
            )
        )
        if month % 2 == 0:
            records.append(_record("emp-2", month, total_calls=5, dice=month))
    return records


def test_period_window_passes_records_through(year_of_records):
    result = aggregate(year_of_records, ReportingWindow.month(2024, 4))
    assert [(a.entity_id, a.metrics.total_calls) for a in result] == [("emp-1", 40), ("emp-2", 5)]
    assert all(a.source_records == 1 for a in result)
    assert result[0].window_end == date(2024, 4, 30)


def test_quarters_sum_to_year(year_of_records):
    year = {a.entity_id: a.metrics for a in aggregate(year_of_records, ReportingWindow.full_year(2024))}
    quarters: dict[str, PerformanceMetrics] = {}
    for q in range(1, 5):
        for a in aggregate(year_of_records, ReportingWindow.quarter(2024, q)):
            quarters[a.entity_id] = quarters[a.entity_id].merge(a.metrics) if a.entity_id in quarters else a.metrics
    for entity, metrics in year.items():
        for name in NUMERIC_METRICS:
            assert getattr(quarters[entity], name) == getattr(metrics, name)
        assert quarters[entity].total_call_duration == metrics.total_call_duration


def test_rollup_sums_durations_and_unions_lists():
    records = [
        _record("emp-1", 1, total_call_duration=Duration.parse("0:59:59"), offered=ListField.parse("Ann, Bob")),
        _record("emp-1", 2, total_call_duration=Duration.parse("0:00:01"), offered=ListField.parse("Bob, 0")),
        _record("emp-1", 3, total_call_duration=Duration.parse("2:00:00"), offered=ListField.parse("0")),
    ]
    (agg,) = aggregate(records, ReportingWindow.quarter(2024, 1))
    assert agg.metrics.total_call_duration.render() == "3:00:00"
    assert agg.metrics.offered == ListField(["Ann", "Bob"])
    assert agg.source_records == 3


def test_first_month_seeds_name_and_team_regardless_of_input_order():
    records = [
        _record("emp-1", 3, team="team-2", name="A. Kumar (new)", total_calls=1),
        _record("emp-1", 1, team="team-1", name="A. Kumar", total_calls=1),
    ]
    (agg,) = aggregate(records, ReportingWindow.quarter(2024, 1))
    assert (agg.display_name, agg.team_id) == ("A. Kumar", "team-1")
    assert agg.metrics.total_calls == 2


def test_no_zero_fill_for_missing_employees(year_of_records):
    result = aggregate([r for r in year_of_records if r.entity_id == "emp-1"], ReportingWindow.half(2024, 1))
    assert [a.entity_id for a in result] == ["emp-1"]
    assert aggregate([], ReportingWindow.full_year(2024)) == []


def test_records_outside_window_are_ignored(year_of_records):
    (agg, _) = aggregate(year_of_records, ReportingWindow.quarter(2024, 1))
    assert agg.metrics.total_calls == 10 + 20 + 30


def test_skip_idle_drops_rows_without_activity():
    records = [
        _record("emp-1", 1, monster=4),  # no calls, submissions or call time
        _record("emp-2", 1, total_submissions=1),
    ]
    window = ReportingWindow.month(2024, 1)
    assert [a.entity_id for a in aggregate(records, window, skip_idle=True)] == ["emp-2"]
    assert len(aggregate(records, window)) == 2


@pytest.mark.asyncio
async def test_load_period_summary_reads_scoped_rows_for_active_employees():
    table = PERFORMANCE.table
    store = InMemoryRecordStore()
    for user, team, month, calls in [
        ("emp-1", "team-1", 1, 10),
        ("emp-1", "team-1", 2, 15),
        ("emp-4", "team-2", 2, 7),
        ("emp-9", "team-1", 2, 99),  # inactive employee
        ("emp-1", "team-1", 4, 1000),  # outside Q1
    ]:
        await store.upsert(
            table,
            {
                "user_id": user,
                "team_id": team,
                "company_id": "acme",
                "report_date": date(2024, month, 1),
                "total_calls": calls,
                "total_call_duration": "0:10:00",
                "offered": None,
                "placed": "Jane Doe",
            },
        )
    directory = InMemoryEntityDirectory(
        {
            "acme": [
                EntityDirectoryEntry("emp-1", "A. Kumar", "team-1"),
                EntityDirectoryEntry("emp-4", "Priya Nair", "team-2"),
                EntityDirectoryEntry("emp-9", "Old Hand", "team-1", active=False),
            ]
        }
    )

    result = await load_period_summary(store, directory, "acme", ReportingWindow.quarter(2024, 1))
    by_id = {a.entity_id: a for a in result}
    assert set(by_id) == {"emp-1", "emp-4"}
    assert by_id["emp-1"].display_name == "A. Kumar"
    assert by_id["emp-1"].metrics.total_calls == 25
    assert by_id["emp-1"].metrics.total_call_duration.render() == "0:20:00"
    assert by_id["emp-1"].metrics.placed.tokens == ("Jane Doe",)

    team_only = await load_period_summary(store, directory, "acme", ReportingWindow.quarter(2024, 1), team_id="team-2")
    assert [a.entity_id for a in team_only] == ["emp-4"]

    one = await load_period_summary(store, directory, "acme", ReportingWindow.month(2024, 2), entity_id="emp-1")
    assert [(a.entity_id, a.metrics.total_calls) for a in one] == [("emp-1", 15)]
