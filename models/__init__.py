"""Central package for ClueForge data models."""

from .coverage_models import (
    CoverageGaps,
    CoveragePriority,
    CoverageStrategy,
    PuzzleDemand,
    YearStats,
)
from .event_models import (
    CandidateEvent,
    CriticResult,
    CritiqueResult,
    CritiqueScores,
    Era,
    EraBucket,
    EventMetadata,
    GenerationOutcome,
    GeneratorOutput,
    GeneratorResult,
    LeakFlags,
    LeakyPhrase,
    LLMCallInfo,
    ReviserResult,
    ValidationResult,
    ValidatorScores,
    YearSummary,
    derive_era,
    parse_era,
)
from .schemas import (
    CRITIQUE_LIST_SCHEMA,
    GENERATOR_OUTPUT_SCHEMA,
    REWRITE_LIST_SCHEMA,
    LLMCritique,
    StructuredSchema,
)

__all__ = [
    "CandidateEvent",
    "CoverageGaps",
    "CoveragePriority",
    "CoverageStrategy",
    "CriticResult",
    "CritiqueResult",
    "CritiqueScores",
    "CRITIQUE_LIST_SCHEMA",
    "Era",
    "EraBucket",
    "EventMetadata",
    "GENERATOR_OUTPUT_SCHEMA",
    "GenerationOutcome",
    "GeneratorOutput",
    "GeneratorResult",
    "LeakFlags",
    "LeakyPhrase",
    "LLMCallInfo",
    "LLMCritique",
    "PuzzleDemand",
    "REWRITE_LIST_SCHEMA",
    "ReviserResult",
    "StructuredSchema",
    "ValidationResult",
    "ValidatorScores",
    "YearStats",
    "YearSummary",
    "derive_era",
    "parse_era",
]
