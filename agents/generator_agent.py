# agents/generator_agent.py
from __future__ import annotations

import structlog
from config import settings
from core.llm_interface import GenerationOptions, GenerationRequest, LLMClient
from prompt_renderer import render_prompt

from models import (
    GENERATOR_OUTPUT_SCHEMA,
    Era,
    GeneratorResult,
    YearSummary,
)
from processing.event_checks import ALLOWED_CATEGORIES, categorize_era
from utils.stage_logging import log_stage_error

logger = structlog.get_logger(__name__)

ROMAN_EMPIRE_CONTEXT = [
    "Context: Early Roman Empire period. Focus on emperors, dynasties, and major figures.",
    "Possible figures: Emperors (Augustus, Tiberius, Nero, Vespasian, Trajan), philosophers, military leaders.",
    "Cultural movements: Early Christianity, Roman architecture, Silk Road trade.",
    "Prefer figure-centric events: 'Emperor X ascends throne' rather than 'Rome experiences change'.",
]

ANCIENT_WORLD_CONTEXT = [
    "Context: Ancient world - emphasize specific figures and dynasties.",
    "Structure events around people: 'Caesar conquers Gaul' NOT 'Rome expands territory'.",
    "Key civilizations: Egypt (pharaohs, dynasties), Greece (philosophers, city-states), Rome (consuls, generals), Persia (kings), China (dynasties, emperors).",
    "Avoid passive constructions - use active voice with named individuals.",
]

HELLENISTIC_CONTEXT = "Hellenistic period: Alexander's successors, Ptolemies, Seleucids, Roman Republic expansion."
CLASSICAL_CONTEXT = "Classical period: Greek city-states, Persian Empire, Roman Republic early phase, Warring States (China)."
EARLY_CIVILIZATIONS_CONTEXT = "Early civilizations: Bronze Age, early dynasties, formation of major cultural centers."

EARLY_MODERN_CONTEXT = [
    "Context: Early modern period - Renaissance, Reformation, Age of Exploration.",
    "Major contemporaries: Consider events in Europe, Ottoman Empire, Ming/Qing China, Mughal India, Aztec/Inca empires.",
    "Topics: Religious conflicts, voyages of exploration, scientific discoveries, artistic movements, dynastic changes.",
    "If documentation is limited, prioritize known figures and major political changes over mundane events.",
]


def digit_count(year: int) -> int:
    """Digits in the absolute year, clamped to 1..4."""
    return min(4, max(1, len(str(abs(int(year))))))


def year_label(year: int, era: Era) -> int:
    return abs(year) if era == "BCE" else year


def build_period_context(year: int, era: Era) -> list[str]:
    """Historical primer lines for sparsely documented periods, or ``[]``."""
    digits = digit_count(year)
    absolute_year = abs(year)

    if era == "CE" and digits <= 2:
        return list(ROMAN_EMPIRE_CONTEXT)

    if era == "BCE":
        lines = list(ANCIENT_WORLD_CONTEXT)
        # Larger BCE numbers are earlier in time.
        if 30 <= absolute_year <= 300:
            lines.append(HELLENISTIC_CONTEXT)
        elif 300 < absolute_year <= 500:
            lines.append(CLASSICAL_CONTEXT)
        elif absolute_year > 500:
            lines.append(EARLY_CIVILIZATIONS_CONTEXT)
        return lines

    if era == "CE" and 1500 <= year <= 1700 and digits == 4:
        return list(EARLY_MODERN_CONTEXT)

    return []


def build_generator_system_prompt() -> str:
    return render_prompt("generator_agent/system.j2", {})


def build_generator_user_prompt(year: int, era: Era) -> str:
    return render_prompt(
        "generator_agent/user.j2",
        {
            "year": year,
            "year_label": year_label(year, era),
            "era": era,
            "digits": digit_count(year),
            "era_bucket": categorize_era(year),
            "context_lines": build_period_context(year, era),
            "categories": list(ALLOWED_CATEGORIES),
            "max_words": settings.MAX_EVENT_WORDS,
        },
    )


class GeneratorAgent:
    """Proposes 12-18 candidate clues for a single target year."""

    def __init__(
        self,
        llm_client: LLMClient,
        model_name: str = settings.GENERATOR_MODEL,
        fallback_model: str | None = settings.FALLBACK_MODEL,
    ):
        self.llm_client = llm_client
        self.model_name = model_name
        self.fallback_model = fallback_model
        logger.info(f"GeneratorAgent initialized with model: {self.model_name}")

    def _options(self) -> GenerationOptions:
        return GenerationOptions(
            model=self.model_name,
            fallback_model=self.fallback_model,
            temperature=settings.TEMPERATURE_GENERATOR,
            max_output_tokens=settings.MAX_OUTPUT_TOKENS_GENERATOR,
            thinking_level=settings.THINKING_LEVEL_GENERATOR,
            cacheable=settings.CACHE_SYSTEM_PROMPT,
            cache_ttl_seconds=settings.CACHE_TTL_SECONDS,
            structured_outputs=settings.STRUCTURED_OUTPUTS,
            namespace="generator",
        )

    async def generate_candidates(self, year: int, era: Era) -> GeneratorResult:
        """Generate candidates for ``year``; text fields come back normalized."""
        summary = YearSummary(value=year, era=era, digits=digit_count(year))
        request = GenerationRequest(
            system_prompt=build_generator_system_prompt(),
            user_prompt=build_generator_user_prompt(year, era),
            schema=GENERATOR_OUTPUT_SCHEMA,
            options=self._options(),
            metadata={"stage": "generator", "year": year, "era": era},
        )
        response = await self.llm_client.generate(request)
        output = response.data

        if output.year.value != year or output.year.era != era:
            logger.warning(
                "Generator echoed a different year than requested; continuing.",
                request_id=response.request_id,
                expected_year=year,
                expected_era=era,
                llm_year=output.year.value,
                llm_era=output.year.era,
            )
            log_stage_error(
                "generator",
                "LLM year mismatch",
                request_id=response.request_id,
                year=year,
            )

        candidates = [candidate.sanitized() for candidate in output.candidates]
        logger.info(
            f"Generator produced {len(candidates)} candidates for {year_label(year, era)} {era}."
        )
        return GeneratorResult(
            year=year,
            era=era,
            year_summary=summary,
            candidates=candidates,
            llm=response.call_info(),
        )
