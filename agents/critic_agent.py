# agents/critic_agent.py
from __future__ import annotations

import structlog
from config import settings
from core.llm_interface import GenerationOptions, GenerationRequest, LLMClient
from prompt_renderer import render_prompt

from models import (
    CRITIQUE_LIST_SCHEMA,
    CandidateEvent,
    CriticResult,
    CritiqueResult,
    CritiqueScores,
    Era,
    LLMCritique,
    ValidationResult,
)
from processing.event_checks import CheckOutcome, run_deterministic_checks
from processing.quality_validator import QualityValidator
from utils.text_processing import dedupe_strings, truncate_for_log

logger = structlog.get_logger(__name__)

VALIDATOR_LEAK_ISSUE = "Validator flagged potential leakage"


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def thresholds() -> dict[str, float]:
    return {
        "factual": settings.THRESHOLD_FACTUAL_MIN,
        "leak_risk": settings.THRESHOLD_LEAK_RISK_MAX,
        "ambiguity": settings.THRESHOLD_AMBIGUITY_MAX,
        "guessability": settings.THRESHOLD_GUESSABILITY_MIN,
    }


def blend_scores(llm_scores: CritiqueScores, validation: ValidationResult) -> CritiqueScores:
    """Blend only ``leak_risk``; the other dimensions stay the LLM's."""
    leak_risk = clamp01(
        settings.CRITIC_LLM_WEIGHT * llm_scores.leak_risk
        + settings.CRITIC_VALIDATOR_WEIGHT * validation.scores.semantic_leakage
    )
    return llm_scores.model_copy(update={"leak_risk": leak_risk})


def enforce_score_thresholds(scores: CritiqueScores) -> CheckOutcome:
    outcome = CheckOutcome()
    if scores.factual < settings.THRESHOLD_FACTUAL_MIN:
        outcome.add(
            f"Factual score below {settings.THRESHOLD_FACTUAL_MIN}",
            "Verify the event date or choose a more verifiable clue",
        )
    if scores.leak_risk > settings.THRESHOLD_LEAK_RISK_MAX:
        outcome.add(
            f"Leak risk above {settings.THRESHOLD_LEAK_RISK_MAX}",
            "Remove wording that directly reveals the year",
        )
    if scores.ambiguity > settings.THRESHOLD_AMBIGUITY_MAX:
        outcome.add(
            f"Ambiguity above {settings.THRESHOLD_AMBIGUITY_MAX}",
            "Anchor the clue with details unique to the target year",
        )
    if scores.guessability < settings.THRESHOLD_GUESSABILITY_MIN:
        outcome.add(
            f"Guessability below {settings.THRESHOLD_GUESSABILITY_MIN}",
            "Highlight why this year stands out compared to nearby years",
        )
    return outcome


def merge_critique(
    candidate: CandidateEvent,
    llm_result: LLMCritique,
    deterministic: CheckOutcome,
    validation: ValidationResult,
) -> CritiqueResult:
    """Combine LLM, rule-based and validator verdicts into one result."""
    scores = blend_scores(llm_result.scores, validation)
    threshold = enforce_score_thresholds(scores)
    issues = dedupe_strings(
        [
            *deterministic.issues,
            *threshold.issues,
            *([] if validation.passed else [VALIDATOR_LEAK_ISSUE]),
            *llm_result.issues,
        ]
    )
    hints = dedupe_strings(
        [
            *deterministic.rewrite_hints,
            *threshold.rewrite_hints,
            *validation.suggestions,
            *llm_result.rewrite_hints,
        ]
    )
    passed = (
        llm_result.passed
        and not deterministic.failed
        and not threshold.failed
        and validation.passed
    )
    return CritiqueResult(
        event=candidate,
        passed=passed,
        scores=scores,
        issues=issues,
        rewrite_hints=hints,
    )


class CriticAgent:
    """Scores candidates with an LLM, rule checks and the quality validator."""

    def __init__(
        self,
        llm_client: LLMClient,
        validator: QualityValidator,
        model_name: str = settings.CRITIC_MODEL,
        fallback_model: str | None = settings.FALLBACK_MODEL,
    ):
        self.llm_client = llm_client
        self.validator = validator
        self.model_name = model_name
        self.fallback_model = fallback_model
        logger.info(f"CriticAgent initialized with model: {self.model_name}")

    def _options(self) -> GenerationOptions:
        return GenerationOptions(
            model=self.model_name,
            fallback_model=self.fallback_model,
            temperature=settings.TEMPERATURE_CRITIC,
            max_output_tokens=settings.MAX_OUTPUT_TOKENS_CRITIC,
            thinking_level=settings.THINKING_LEVEL_CRITIC,
            cacheable=settings.CACHE_SYSTEM_PROMPT,
            cache_ttl_seconds=settings.CACHE_TTL_SECONDS,
            structured_outputs=settings.STRUCTURED_OUTPUTS,
            namespace="critic",
        )

    async def critique_candidates(
        self, year: int, era: Era, candidates: list[CandidateEvent]
    ) -> CriticResult:
        if not candidates:
            return CriticResult(year=year, era=era)

        deterministic = [run_deterministic_checks(c, year) for c in candidates]
        request = GenerationRequest(
            system_prompt=render_prompt(
                "critic_agent/system.j2", {"thresholds": thresholds()}
            ),
            user_prompt=render_prompt(
                "critic_agent/user.j2",
                {
                    "year_label": abs(year),
                    "era": era,
                    "candidates": candidates,
                },
            ),
            schema=CRITIQUE_LIST_SCHEMA.with_length(len(candidates)),
            options=self._options(),
            metadata={
                "stage": "critic",
                "year": year,
                "era": era,
                "candidate_count": len(candidates),
            },
        )
        response = await self.llm_client.generate(request)

        results: list[CritiqueResult] = []
        for candidate, llm_result, checks in zip(
            candidates, response.data, deterministic, strict=True
        ):
            validation = self.validator.validate_event(
                candidate.event_text, year, candidate.metadata
            )
            if llm_result.passed != validation.passed:
                logger.info(
                    "Critic and validator disagree.",
                    year=year,
                    clue=truncate_for_log(candidate.event_text),
                    llm_passed=llm_result.passed,
                    validator_passed=validation.passed,
                    reasoning=validation.reasoning,
                )
            results.append(merge_critique(candidate, llm_result, checks, validation))

        for result in results:
            if (
                not result.passed
                and result.scores.leak_risk > settings.LEARNING_LEAK_RISK_TRIGGER
            ):
                await self.validator.learn_from_rejected(
                    result.event.event_text, (year, year)
                )

        deterministic_failures = sum(1 for checks in deterministic if checks.failed)
        passed_count = sum(1 for result in results if result.passed)
        logger.info(
            f"Critic passed {passed_count}/{len(results)} candidates for year {year}.",
            deterministic_failures=deterministic_failures,
        )
        return CriticResult(
            year=year,
            era=era,
            results=results,
            llm=response.call_info(),
            deterministic_failures=deterministic_failures,
        )
