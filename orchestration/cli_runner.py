# orchestration/cli_runner.py
"""Command-line runner for the daily event generation batch."""

from __future__ import annotations

import asyncio

import httpx
import structlog
from agents.critic_agent import CriticAgent
from agents.generator_agent import GeneratorAgent
from agents.reviser_agent import ReviserAgent
from config import settings
from core.llm_interface import LLMClient, LLMConfigurationError
from utils.logging import setup_logging

from orchestration.batch_orchestrator import BatchOrchestrator
from orchestration.coverage_orchestrator import CoverageOrchestrator
from orchestration.event_store import EventStore, InMemoryEventStore
from orchestration.models import BatchResult
from orchestration.pipeline import YearPipeline
from orchestration.rate_limiter import RateLimiter
from processing.quality_validator import QualityValidator

logger = structlog.get_logger(__name__)


def build_orchestrator(
    http_client: httpx.AsyncClient, store: EventStore | None = None
) -> BatchOrchestrator:
    """Wire every component explicitly around one shared HTTP client."""
    llm_client = LLMClient(http_client)
    validator = QualityValidator()
    store = store or InMemoryEventStore()
    pipeline = YearPipeline(
        generator=GeneratorAgent(llm_client),
        critic=CriticAgent(llm_client, validator),
        reviser=ReviserAgent(llm_client),
        store=store,
    )
    return BatchOrchestrator(
        pipeline=pipeline,
        coverage=CoverageOrchestrator(store),
        rate_limiter=RateLimiter(
            settings.RATE_LIMIT_TOKENS_PER_SECOND,
            settings.RATE_LIMIT_BURST_CAPACITY,
        ),
    )


async def generate_daily_batch(target_count: int | None = None) -> BatchResult:
    """Entry point: run one batch of ``target_count`` years."""
    async with httpx.AsyncClient(timeout=settings.HTTPX_TIMEOUT) as http_client:
        orchestrator = build_orchestrator(http_client)
        return await orchestrator.generate_daily_batch(target_count)


def run(target_count: int | None) -> None:
    """Configure logging and run a batch to completion."""
    setup_logging()
    try:
        result = asyncio.run(generate_daily_batch(target_count))
    except KeyboardInterrupt:
        logger.info("Batch shutting down gracefully due to KeyboardInterrupt...")
        return
    except LLMConfigurationError as config_err:
        logger.critical("Batch cannot start: %s", config_err)
        raise SystemExit(2) from config_err
    logger.info(
        "Batch finished.",
        success_count=result.success_count,
        failure_count=result.failure_count,
        failed_years=result.failed_years,
        total_cost=result.total_cost,
        duration_ms=result.total_duration_ms,
    )
