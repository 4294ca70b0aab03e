# agents/reviser_agent.py
from __future__ import annotations

import structlog
from config import settings
from core.llm_interface import GenerationOptions, GenerationRequest, LLMClient
from prompt_renderer import render_prompt

from models import REWRITE_LIST_SCHEMA, CritiqueResult, Era, ReviserResult
from processing.event_checks import categorize_era

logger = structlog.get_logger(__name__)


class ReviserAgent:
    """Rewrites failing clues using the critic's hints. Never re-critiques."""

    def __init__(
        self,
        llm_client: LLMClient,
        model_name: str = settings.REVISER_MODEL,
        fallback_model: str | None = settings.FALLBACK_MODEL,
    ):
        self.llm_client = llm_client
        self.model_name = model_name
        self.fallback_model = fallback_model
        logger.info(f"ReviserAgent initialized with model: {self.model_name}")

    def _options(self) -> GenerationOptions:
        return GenerationOptions(
            model=self.model_name,
            fallback_model=self.fallback_model,
            temperature=settings.TEMPERATURE_REVISER,
            max_output_tokens=settings.MAX_OUTPUT_TOKENS_REVISER,
            thinking_level=settings.THINKING_LEVEL_REVISER,
            cacheable=settings.CACHE_SYSTEM_PROMPT,
            cache_ttl_seconds=settings.CACHE_TTL_SECONDS,
            structured_outputs=settings.STRUCTURED_OUTPUTS,
            namespace="reviser",
        )

    async def revise_candidates(
        self, failing: list[CritiqueResult], year: int, era: Era
    ) -> ReviserResult:
        """Return one sanitized rewrite per failing critique, in order."""
        if not failing:
            return ReviserResult(year=year, era=era)

        prompt_context = {
            "year_label": abs(year),
            "era": era,
            "era_bucket": categorize_era(year),
            "max_words": settings.MAX_EVENT_WORDS,
        }
        failures = [
            {"event": failure.event, "hints": failure.rewrite_hints}
            for failure in failing
        ]
        request = GenerationRequest(
            system_prompt=render_prompt("reviser_agent/system.j2", prompt_context),
            user_prompt=render_prompt(
                "reviser_agent/user.j2", {**prompt_context, "failures": failures}
            ),
            schema=REWRITE_LIST_SCHEMA.with_length(len(failing)),
            options=self._options(),
            metadata={
                "stage": "reviser",
                "year": year,
                "era": era,
                "failing_count": len(failing),
            },
        )
        response = await self.llm_client.generate(request)
        rewrites = [event.sanitized() for event in response.data]
        logger.info(f"Reviser rewrote {len(rewrites)} candidates for year {year}.")
        return ReviserResult(
            year=year, era=era, candidates=rewrites, llm=response.call_info()
        )
