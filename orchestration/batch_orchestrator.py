# orchestration/batch_orchestrator.py
"""Top-level coordinator for a daily batch of year pipelines."""

from __future__ import annotations

import asyncio
import math
import time
from typing import Any, Protocol

import structlog
from config import settings
from core.llm_interface import LLMConfigurationError

from models import derive_era
from orchestration.coverage_orchestrator import CoverageOrchestrator
from orchestration.models import BatchResult, YearGenerationResult
from orchestration.rate_limiter import RateLimiter
from utils.stage_logging import describe_error, log_stage_error, log_stage_success

logger = structlog.get_logger(__name__)


class YearRunner(Protocol):
    async def execute_year_generation(self, year: int) -> YearGenerationResult: ...


def clamp_target_count(value: Any) -> int:
    """Coerce a requested batch size into the supported range."""
    if value is None:
        return settings.DEFAULT_TARGET_COUNT
    try:
        number = float(value)
    except (TypeError, ValueError):
        return settings.DEFAULT_TARGET_COUNT
    if not math.isfinite(number):
        return settings.DEFAULT_TARGET_COUNT
    return max(
        settings.MIN_TARGET_COUNT, min(settings.MAX_TARGET_COUNT, math.floor(number))
    )


class BatchOrchestrator:
    """Plans a batch, fans out year pipelines under the rate limiter, aggregates."""

    def __init__(
        self,
        pipeline: YearRunner,
        coverage: CoverageOrchestrator,
        rate_limiter: RateLimiter,
    ) -> None:
        self.pipeline = pipeline
        self.coverage = coverage
        self.rate_limiter = rate_limiter

    async def _run_year(self, year: int) -> YearGenerationResult:
        try:
            return await self.rate_limiter.execute(
                lambda: self.pipeline.execute_year_generation(year)
            )
        except LLMConfigurationError:
            raise
        except Exception as exc:
            logger.error(f"Year {year} failed; continuing with the batch.", exc_info=exc)
            log_stage_error("orchestrator", exc, year=year)
            return YearGenerationResult(
                year=year,
                era=derive_era(year),
                status="failed",
                reason=describe_error(exc),
            )

    async def generate_daily_batch(self, target_count: Any = None) -> BatchResult:
        """Run one batch. Raises only for configuration errors."""
        count = clamp_target_count(target_count)
        strategy = await self.coverage.plan(count)
        log_stage_success(
            "orchestrator",
            "Coverage strategy selected",
            years_selected=len(strategy.target_years),
            selected_years=strategy.target_years,
            priority=strategy.priority,
            era_balance=strategy.era_balance,
            estimated_cost=strategy.estimated_cost,
        )

        started = time.monotonic()
        outcomes = await asyncio.gather(
            *(self._run_year(year) for year in strategy.target_years),
            return_exceptions=True,
        )
        duration_ms = int((time.monotonic() - started) * 1000)

        for outcome in outcomes:
            if isinstance(outcome, LLMConfigurationError):
                raise outcome
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        results = {result.year: result for result in outcomes}
        failed_years = [r.year for r in outcomes if r.status != "success"]
        total_cost = round(sum(r.total_cost for r in outcomes), 6)
        batch = BatchResult(
            attempted_years=list(strategy.target_years),
            success_count=len(outcomes) - len(failed_years),
            failure_count=len(failed_years),
            failed_years=failed_years,
            total_cost=total_cost,
            total_duration_ms=duration_ms,
            strategy=strategy,
            results=results,
        )
        log_stage_success(
            "orchestrator",
            "Batch completed",
            attempted_years=len(batch.attempted_years),
            success_count=batch.success_count,
            failure_count=batch.failure_count,
            failed_years=batch.failed_years,
            cost_usd=batch.total_cost,
            duration_ms=duration_ms,
            avg_time_per_year=(
                round(duration_ms / len(outcomes)) if outcomes else 0
            ),
        )
        return batch
