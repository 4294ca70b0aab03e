# models/coverage_models.py
"""Records used by the coverage planner."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .event_models import EraBucket

CoveragePriority = Literal["missing", "low_quality", "strategic"]


def empty_era_counts() -> dict[EraBucket, int]:
    return {"ancient": 0, "medieval": 0, "modern": 0}


class YearStats(BaseModel):
    """Event pool counts for one year, as reported by the event store."""

    model_config = ConfigDict(frozen=True)

    year: int
    total: int = 0
    used: int = 0
    available: int = 0
    flagged: int = 0


class CoverageGaps(BaseModel):
    missing_years: list[int] = Field(default_factory=list)
    insufficient_years: list[int] = Field(default_factory=list)
    low_quality_years: list[int] = Field(default_factory=list)
    unused_by_era: dict[EraBucket, int] = Field(default_factory=empty_era_counts)
    coverage_by_era: dict[EraBucket, float] = Field(
        default_factory=lambda: {"ancient": 0.0, "medieval": 0.0, "modern": 0.0}
    )


class PuzzleDemand(BaseModel):
    selection_frequency: dict[int, int] = Field(default_factory=dict)
    high_demand_years: list[int] = Field(default_factory=list)
    demand_by_era: dict[EraBucket, int] = Field(default_factory=empty_era_counts)


class CoverageStrategy(BaseModel):
    """Years to work on next. Derived fresh on every planning call."""

    target_years: list[int] = Field(default_factory=list)
    priority: CoveragePriority = "strategic"
    era_balance: dict[EraBucket, int] = Field(default_factory=empty_era_counts)
    estimated_cost: float = 0.0
