# orchestration/pipeline.py
"""Generate, critique and revise loop for a single target year."""

from __future__ import annotations

import time
from functools import cmp_to_key

import structlog
from agents.critic_agent import CriticAgent
from agents.generator_agent import GeneratorAgent
from agents.reviser_agent import ReviserAgent
from config import settings

from models import CandidateEvent, CritiqueResult, derive_era
from orchestration.event_store import EventStore
from orchestration.models import YearGenerationResult
from orchestration.token_accountant import Stage, TokenAccountant
from processing.quality_scores import compute_quality_scores
from utils.stage_logging import log_stage_success

logger = structlog.get_logger(__name__)

FAILURE_INSUFFICIENT_QUALITY = "insufficient_quality"
_SCORE_EPSILON = 0.0001


def _compare(a: CritiqueResult, b: CritiqueResult) -> float:
    guess_diff = b.scores.guessability - a.scores.guessability
    if abs(guess_diff) > _SCORE_EPSILON:
        return guess_diff
    factual_diff = b.scores.factual - a.scores.factual
    if abs(factual_diff) > _SCORE_EPSILON:
        return factual_diff
    return a.scores.leak_risk - b.scores.leak_risk


def select_top_events(
    results: list[CritiqueResult], limit: int = settings.MAX_SELECTED_EVENTS
) -> list[CandidateEvent]:
    """Best passing events: guessability desc, then factual desc, then leak risk asc."""
    passed = [result for result in results if result.passed]
    return [result.event for result in sorted(passed, key=cmp_to_key(_compare))[:limit]]


def rebuild_candidate_set(
    results: list[CritiqueResult], rewrites: list[CandidateEvent]
) -> list[CandidateEvent]:
    """Keep passing events; replace failing ones, in order, with their rewrites."""
    rebuilt: list[CandidateEvent] = []
    rewrite_index = 0
    for result in results:
        if result.passed:
            rebuilt.append(result.event)
            continue
        if rewrite_index < len(rewrites):
            rebuilt.append(rewrites[rewrite_index])
        else:
            rebuilt.append(result.event)
        rewrite_index += 1
    return rebuilt


class YearPipeline:
    """Runs the generator/critic/reviser loop and records each year's outcome."""

    def __init__(
        self,
        generator: GeneratorAgent,
        critic: CriticAgent,
        reviser: ReviserAgent,
        store: EventStore | None = None,
    ) -> None:
        self.generator = generator
        self.critic = critic
        self.reviser = reviser
        self.store = store

    async def run_generation_pipeline(self, year: int) -> YearGenerationResult:
        era = derive_era(year)
        accountant = TokenAccountant()
        attempts = 0
        total_cycles = 0
        total_revisions = 0
        deterministic_failures = 0
        last_results: list[CritiqueResult] = []

        while attempts < settings.MAX_TOTAL_ATTEMPTS:
            attempts += 1
            generation = await self.generator.generate_candidates(year, era)
            accountant.record_usage(Stage.GENERATOR, generation.llm)
            candidates = generation.candidates

            cycles = 0
            while cycles < settings.MAX_CRITIC_CYCLES:
                cycles += 1
                total_cycles += 1
                critique = await self.critic.critique_candidates(year, era, candidates)
                accountant.record_usage(Stage.CRITIC, critique.llm)
                deterministic_failures += critique.deterministic_failures
                last_results = critique.results

                if len(critique.passing) >= settings.MIN_REQUIRED_EVENTS:
                    selected = select_top_events(critique.results)
                    if len(selected) >= settings.MIN_REQUIRED_EVENTS:
                        return YearGenerationResult(
                            year=year,
                            era=era,
                            status="success",
                            events=selected,
                            attempts=attempts,
                            critic_cycles=total_cycles,
                            revisions=total_revisions,
                            deterministic_failures=deterministic_failures,
                            usage=accountant.summary(),
                            quality_scores=compute_quality_scores(
                                critique.results, selected
                            ),
                        )

                failing = critique.failing
                if not failing or cycles >= settings.MAX_CRITIC_CYCLES:
                    break

                revision = await self.reviser.revise_candidates(failing, year, era)
                accountant.record_usage(Stage.REVISER, revision.llm)
                total_revisions += 1
                candidates = rebuild_candidate_set(critique.results, revision.rewrites)

            logger.info(
                f"Attempt {attempts} for year {year} ended without enough passing events."
            )

        return YearGenerationResult(
            year=year,
            era=era,
            status="failed",
            reason=FAILURE_INSUFFICIENT_QUALITY,
            attempts=attempts,
            critic_cycles=total_cycles,
            revisions=total_revisions,
            deterministic_failures=deterministic_failures,
            usage=accountant.summary(),
            quality_scores=(
                compute_quality_scores(last_results, []) if last_results else None
            ),
        )

    async def execute_year_generation(self, year: int) -> YearGenerationResult:
        """Run the pipeline, write the generation log record and store successes."""
        started = time.monotonic()
        result = await self.run_generation_pipeline(year)
        total = result.usage.get("total", {})
        log_stage_success(
            "orchestrator",
            f"Pipeline completed for {year}",
            year=year,
            era=result.era,
            status=result.status,
            attempt_count=result.attempts,
            events_generated=len(result.events),
            tokens={
                "input": total.get("input_tokens", 0),
                "output": total.get("output_tokens", 0),
                "reasoning": total.get("reasoning_tokens", 0),
                "total": total.get("total_tokens", 0),
            },
            cost_usd=result.total_cost,
            cache_hits=total.get("cache_hits", 0),
            cache_misses=total.get("cache_misses", 0),
            fallback_count=total.get("fallbacks", 0),
            error_message=result.reason,
            quality_overall=(
                result.quality_scores.overall if result.quality_scores else None
            ),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        if result.status == "success" and self.store is not None:
            await self.store.insert_events(year, result.events)
        return result
