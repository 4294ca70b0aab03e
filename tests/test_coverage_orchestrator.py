# tests/test_coverage_orchestrator.py
import random

import pytest
from orchestration.coverage_orchestrator import (
    CoverageOrchestrator,
    analyze_coverage_gaps,
    analyze_puzzle_demand,
    select_work,
)
from orchestration.event_store import InMemoryEventStore

from models import YearStats


def full(year, available=10, flagged=0):
    return YearStats(year=year, total=10, used=10 - available, available=available, flagged=flagged)


def test_gaps_partition_small_range():
    stats = [
        full(1900),
        full(1901, available=3),
        full(1902, flagged=5),
        full(2100),
    ]
    gaps = analyze_coverage_gaps(stats, start=1900, end=1904)

    assert gaps.missing_years == [1903, 1904]
    assert gaps.insufficient_years == [1901]
    assert gaps.low_quality_years == [1902]
    assert gaps.unused_by_era["modern"] == 10 + 3 + 10
    assert gaps.coverage_by_era["modern"] == pytest.approx(3 / 5)
    assert gaps.coverage_by_era["ancient"] == 0.0


def test_year_with_no_events_counts_as_missing():
    gaps = analyze_coverage_gaps([YearStats(year=5, total=0)], start=5, end=5)
    assert gaps.missing_years == [5]


def test_puzzle_demand_counts_repeats():
    demand = analyze_puzzle_demand([1969, 1969, 1969, 1066, 1066, 44])
    assert demand.selection_frequency[1969] == 3
    assert demand.high_demand_years == [1969, 1066]
    assert demand.demand_by_era == {"ancient": 1, "medieval": 2, "modern": 3}


def test_selection_guarantees_every_era():
    stats = [full(year) for year in range(-776, 1500)]
    gaps = analyze_coverage_gaps(stats)
    assert all(year >= 1500 for year in gaps.missing_years)

    strategy = select_work(10, gaps, analyze_puzzle_demand([]), rng=random.Random(7))

    buckets = strategy.era_balance
    assert len(strategy.target_years) == 10
    assert len(set(strategy.target_years)) == 10
    assert buckets["ancient"] >= 1
    assert buckets["medieval"] >= 1
    assert buckets["modern"] >= 1
    assert strategy.priority == "strategic"
    assert strategy.estimated_cost == pytest.approx(1.2)


def test_demand_years_come_first_and_set_priority():
    gaps = analyze_coverage_gaps([full(1066, available=2)], start=1000, end=1100)
    demand = analyze_puzzle_demand([1066, 1066, 1070, 1070, 1070])

    strategy = select_work(5, gaps, demand, start=1000, end=1100)

    assert strategy.target_years[:2] == [1070, 1066]
    assert strategy.priority == "missing"
    assert len(strategy.target_years) == 5


def test_low_quality_priority_when_demand_is_all_low_quality():
    gaps = analyze_coverage_gaps([full(1200, flagged=6)], start=1200, end=1201)
    demand = analyze_puzzle_demand([1200, 1200])
    strategy = select_work(1, gaps, demand, start=1200, end=1201)
    assert strategy.target_years == [1200]
    assert strategy.priority == "low_quality"


def test_zero_count_selects_nothing():
    gaps = analyze_coverage_gaps([], start=1, end=3)
    assert select_work(0, gaps, analyze_puzzle_demand([])).target_years == []


@pytest.mark.asyncio
async def test_plan_reads_store_snapshot(event_factory):
    store = InMemoryEventStore(puzzle_years=[1969, 1969])
    await store.insert_events(1969, [event_factory() for _ in range(8)])

    strategy = await CoverageOrchestrator(store, rng=random.Random(1)).plan(3)

    assert len(strategy.target_years) == 3
    assert 1969 not in strategy.target_years
    assert {"ancient", "medieval", "modern"} <= {
        bucket for bucket, count in strategy.era_balance.items() if count
    }
