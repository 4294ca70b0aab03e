# orchestration/models.py
"""Shared dataclasses for orchestration services."""

from dataclasses import dataclass, field
from typing import Any, Literal

from models import CandidateEvent, CoverageStrategy, Era
from processing.quality_scores import RunQualityScores

YearStatus = Literal["success", "failed"]


@dataclass
class YearGenerationResult:
    """Outcome of the full generate/critique/revise loop for one year."""

    year: int
    era: Era
    status: YearStatus
    events: list[CandidateEvent] = field(default_factory=list)
    reason: str | None = None
    attempts: int = 0
    critic_cycles: int = 0
    revisions: int = 0
    deterministic_failures: int = 0
    usage: dict[str, dict[str, Any]] = field(default_factory=dict)
    quality_scores: RunQualityScores | None = None

    @property
    def total_cost(self) -> float:
        return float(self.usage.get("total", {}).get("cost_usd", 0.0))


@dataclass
class BatchResult:
    """Aggregate of one batch run. Partial failures are reported, not raised."""

    attempted_years: list[int] = field(default_factory=list)
    success_count: int = 0
    failure_count: int = 0
    failed_years: list[int] = field(default_factory=list)
    total_cost: float = 0.0
    total_duration_ms: int = 0
    strategy: CoverageStrategy = field(default_factory=CoverageStrategy)
    results: dict[int, YearGenerationResult] = field(default_factory=dict)
