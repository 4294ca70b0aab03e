# models/event_models.py
"""Pydantic records passed between the generator, critic and reviser stages."""

from __future__ import annotations

from typing import Any, Literal

from core.usage import TokenUsage
from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.text_processing import normalize_whitespace

Era = Literal["BCE", "CE"]
EraBucket = Literal["ancient", "medieval", "modern"]


def parse_era(value: str) -> Era:
    """Normalize an era label, raising ``ValueError`` for anything else."""
    normalized = (value or "").strip().upper()
    if normalized == "BCE":
        return "BCE"
    if normalized == "CE":
        return "CE"
    raise ValueError(f"Unsupported era: {value!r}")


def derive_era(year: int) -> Era:
    """Year zero and below are BCE, everything else CE."""
    return "BCE" if year <= 0 else "CE"


class AgentBaseModel(BaseModel):
    """Base model for stage records. Unknown keys from the LLM are dropped."""

    model_config = ConfigDict(from_attributes=True, extra="ignore", frozen=True)

    def get(self, item: str, default: Any = None) -> Any:  # pragma: no cover
        return getattr(self, item, default)


class LeakFlags(AgentBaseModel):
    has_digits: bool = False
    has_century_terms: bool = False
    has_spelled_year: bool = False

    def any(self) -> bool:
        return self.has_digits or self.has_century_terms or self.has_spelled_year


class EventMetadata(AgentBaseModel):
    """Optional puzzle metadata estimated by the generator."""

    difficulty: float | None = None
    category: list[str] | None = None
    era: str | None = None
    fame_level: float | None = None
    tags: list[str] | None = None

    def present_fields(self) -> set[str]:
        return {name for name, value in self if value is not None}


class CandidateEvent(AgentBaseModel):
    """One unverified historical clue proposed for a target year."""

    canonical_title: str
    event_text: str
    geo: str
    difficulty_guess: int = Field(ge=1, le=5)
    confidence: float = Field(ge=0.0, le=1.0)
    leak_flags: LeakFlags = Field(default_factory=LeakFlags)
    metadata: EventMetadata | None = None

    def sanitized(self) -> CandidateEvent:
        """Return a copy with trimmed title/geo and collapsed clue text."""
        return self.model_copy(
            update={
                "canonical_title": self.canonical_title.strip(),
                "event_text": normalize_whitespace(self.event_text),
                "geo": self.geo.strip(),
            }
        )


class CritiqueScores(AgentBaseModel):
    factual: float = Field(ge=0.0, le=1.0)
    leak_risk: float = Field(ge=0.0, le=1.0)
    ambiguity: float = Field(ge=0.0, le=1.0)
    guessability: float = Field(ge=0.0, le=1.0)
    diversity: float = Field(default=0.0, ge=0.0, le=1.0)


class CritiqueResult(AgentBaseModel):
    """Critic verdict for a single candidate."""

    event: CandidateEvent
    passed: bool
    scores: CritiqueScores
    issues: list[str] = Field(default_factory=list)
    rewrite_hints: list[str] = Field(default_factory=list)


class YearSummary(AgentBaseModel):
    value: int
    era: Era
    digits: int = Field(ge=1, le=4)

    @field_validator("era", mode="before")
    @classmethod
    def _normalize_era(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class GeneratorOutput(AgentBaseModel):
    """Structured payload the generator LLM must return."""

    year: YearSummary
    candidates: list[CandidateEvent]


class LLMCallInfo(AgentBaseModel):
    """Audit block attached to every stage result."""

    request_id: str = ""
    model: str = ""
    usage: TokenUsage = Field(default_factory=TokenUsage)
    cost_usd: float = 0.0
    cache_hit: bool = False
    fallback_from: str | None = None

    @property
    def issued(self) -> bool:
        """Whether an LLM call actually happened."""
        return bool(self.request_id)


class GenerationOutcome(AgentBaseModel):
    """Per-year stage output: the candidates plus the call that produced them."""

    year: int
    era: Era
    candidates: list[CandidateEvent] = Field(default_factory=list)
    llm: LLMCallInfo = Field(default_factory=LLMCallInfo)


class GeneratorResult(GenerationOutcome):
    year_summary: YearSummary


class CriticResult(AgentBaseModel):
    year: int
    era: Era
    results: list[CritiqueResult] = Field(default_factory=list)
    llm: LLMCallInfo = Field(default_factory=LLMCallInfo)
    deterministic_failures: int = 0

    @property
    def passing(self) -> list[CritiqueResult]:
        return [result for result in self.results if result.passed]

    @property
    def failing(self) -> list[CritiqueResult]:
        return [result for result in self.results if not result.passed]


class ReviserResult(GenerationOutcome):
    """Rewritten candidates; ``candidates`` holds the rewrites in order."""

    @property
    def rewrites(self) -> list[CandidateEvent]:
        return self.candidates


class ValidatorScores(AgentBaseModel):
    """Independent quality scores from the validator, each in [0, 1]."""

    semantic_leakage: float = 0.0
    factual: float = 0.5
    ambiguity: float = 0.5
    guessability: float = 0.5
    metadata_quality: float = 0.0


class ValidationResult(AgentBaseModel):
    passed: bool
    scores: ValidatorScores
    reasoning: str
    suggestions: list[str] = Field(default_factory=list)


class LeakyPhrase(BaseModel):
    """Knowledge-base entry: a phrase known to give away its year."""

    model_config = ConfigDict(populate_by_name=True)

    phrase: str
    year_range: tuple[int, int] = Field(alias="yearRange")
    embedding: list[float] = Field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
