# orchestration/coverage_orchestrator.py
"""Demand-aware planning of which years to generate events for next.

Everything here except ``CoverageOrchestrator.plan`` is a pure function of
its inputs, so planning decisions can be reproduced from a snapshot of the
event store.
"""

from __future__ import annotations

import math
import random
from collections import Counter
from collections.abc import Iterable, Sequence

import structlog
from config import settings

from models import (
    CoverageGaps,
    CoveragePriority,
    CoverageStrategy,
    EraBucket,
    PuzzleDemand,
    YearStats,
)
from models.coverage_models import empty_era_counts
from orchestration.event_store import EventStore
from processing.event_checks import categorize_era

logger = structlog.get_logger(__name__)

ERA_BUCKETS: tuple[EraBucket, ...] = ("ancient", "medieval", "modern")

SEVERITY_MISSING = 0
SEVERITY_INSUFFICIENT = 1
SEVERITY_LOW_QUALITY = 2


def year_range(
    start: int = settings.YEAR_RANGE_START, end: int = settings.YEAR_RANGE_END
) -> range:
    return range(start, end + 1)


def years_in_bucket(bucket: EraBucket, years: Iterable[int]) -> list[int]:
    return [year for year in years if categorize_era(year) == bucket]


def analyze_coverage_gaps(
    stats: Sequence[YearStats],
    start: int = settings.YEAR_RANGE_START,
    end: int = settings.YEAR_RANGE_END,
) -> CoverageGaps:
    """Partition the supported year range into missing/insufficient/low-quality."""
    by_year = {stat.year: stat for stat in stats if start <= stat.year <= end}
    all_years = year_range(start, end)

    missing: list[int] = []
    insufficient: list[int] = []
    low_quality: list[int] = []
    unused_by_era = empty_era_counts()
    covered_by_era = empty_era_counts()
    bucket_sizes = empty_era_counts()

    for year in all_years:
        bucket = categorize_era(year)
        bucket_sizes[bucket] += 1
        stat = by_year.get(year)
        if stat is None or stat.total <= 0:
            missing.append(year)
            continue
        covered_by_era[bucket] += 1
        unused_by_era[bucket] += stat.available
        if stat.available < settings.MIN_EVENTS_PER_YEAR:
            insufficient.append(year)
        if stat.flagged / stat.total > settings.LOW_QUALITY_FLAG_RATIO:
            low_quality.append(year)

    coverage_by_era = {
        bucket: covered_by_era[bucket] / bucket_sizes[bucket]
        if bucket_sizes[bucket]
        else 0.0
        for bucket in ERA_BUCKETS
    }
    return CoverageGaps(
        missing_years=missing,
        insufficient_years=insufficient,
        low_quality_years=low_quality,
        unused_by_era=unused_by_era,
        coverage_by_era=coverage_by_era,
    )


def analyze_puzzle_demand(puzzle_years: Iterable[int]) -> PuzzleDemand:
    """Count how often each year has been a puzzle target."""
    frequency = Counter(puzzle_years)
    high_demand = sorted(
        (year for year, count in frequency.items() if count > 1),
        key=lambda year: (-frequency[year], year),
    )
    demand_by_era = empty_era_counts()
    for year, count in frequency.items():
        demand_by_era[categorize_era(year)] += count
    return PuzzleDemand(
        selection_frequency=dict(frequency),
        high_demand_years=high_demand,
        demand_by_era=demand_by_era,
    )


def _severity_map(gaps: CoverageGaps) -> dict[int, int]:
    severity: dict[int, int] = {}
    for years, level in (
        (gaps.low_quality_years, SEVERITY_LOW_QUALITY),
        (gaps.insufficient_years, SEVERITY_INSUFFICIENT),
        (gaps.missing_years, SEVERITY_MISSING),
    ):
        for year in years:
            severity[year] = min(level, severity.get(year, level))
    return severity


def select_work(
    count: int,
    gaps: CoverageGaps,
    demand: PuzzleDemand,
    rng: random.Random | None = None,
    start: int = settings.YEAR_RANGE_START,
    end: int = settings.YEAR_RANGE_END,
) -> CoverageStrategy:
    """Choose up to ``count`` distinct years: demand first, then era-balanced strategy."""
    if count <= 0:
        return CoverageStrategy()
    rng = rng or random.Random()
    severity = _severity_map(gaps)
    frequency = demand.selection_frequency
    selected: list[int] = []
    chosen: set[int] = set()

    def take(year: int) -> None:
        selected.append(year)
        chosen.add(year)

    demand_slots = min(count, math.floor(count * settings.DEMAND_SHARE + 0.5))
    demand_candidates = sorted(
        (year for year in demand.high_demand_years if year in severity),
        key=lambda year: (-frequency.get(year, 0), severity[year], year),
    )
    demand_picks = demand_candidates[:demand_slots]
    for year in demand_picks:
        take(year)

    by_severity = sorted(
        severity, key=lambda year: (severity[year], -frequency.get(year, 0), year)
    )

    represented = {categorize_era(year) for year in selected}
    for bucket in ERA_BUCKETS:
        if len(selected) >= count:
            break
        if bucket in represented:
            continue
        bucket_gaps = [
            year
            for year in by_severity
            if year not in chosen and categorize_era(year) == bucket
        ]
        if bucket_gaps:
            take(bucket_gaps[0])
        else:
            pool = [
                year
                for year in years_in_bucket(bucket, year_range(start, end))
                if year not in chosen
            ]
            if not pool:
                continue
            take(rng.choice(pool))
        represented.add(bucket)

    for year in by_severity:
        if len(selected) >= count:
            break
        if year not in chosen:
            take(year)

    priority: CoveragePriority = "strategic"
    if any(severity[year] == SEVERITY_MISSING for year in demand_picks):
        priority = "missing"
    elif demand_picks and all(
        severity[year] == SEVERITY_LOW_QUALITY for year in demand_picks
    ):
        priority = "low_quality"

    era_balance = empty_era_counts()
    for year in selected:
        era_balance[categorize_era(year)] += 1

    return CoverageStrategy(
        target_years=selected,
        priority=priority,
        era_balance=era_balance,
        estimated_cost=round(len(selected) * settings.AVG_COST_PER_YEAR_USD, 6),
    )


class CoverageOrchestrator:
    """Reads the event store and plans the next batch of years."""

    def __init__(self, store: EventStore, rng: random.Random | None = None) -> None:
        self.store = store
        self.rng = rng or random.Random()

    async def plan(self, count: int) -> CoverageStrategy:
        stats = await self.store.get_year_stats()
        puzzle_years = await self.store.get_puzzle_years()
        gaps = analyze_coverage_gaps(stats)
        demand = analyze_puzzle_demand(puzzle_years)
        strategy = select_work(count, gaps, demand, rng=self.rng)
        logger.info(
            f"Coverage plan selected {len(strategy.target_years)} years.",
            priority=strategy.priority,
            era_balance=strategy.era_balance,
            missing=len(gaps.missing_years),
            insufficient=len(gaps.insufficient_years),
            low_quality=len(gaps.low_quality_years),
            estimated_cost=strategy.estimated_cost,
        )
        return strategy
