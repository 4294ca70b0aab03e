# models/schemas.py
"""Explicit structured-output descriptors for each LLM request type.

Each descriptor pairs a hand-written JSON schema (sent to the provider for
constrained decoding) with a pydantic ``TypeAdapter`` used to re-validate the
decoded payload before it is returned to callers.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .event_models import CandidateEvent, CritiqueScores, GeneratorOutput

T = TypeVar("T")


class LLMCritique(BaseModel):
    """Critique as returned by the critic LLM, before merging."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    passed: bool
    scores: CritiqueScores
    issues: list[str] = Field(default_factory=list)
    rewrite_hints: list[str] = Field(default_factory=list)
    event: dict[str, Any] | None = None


@dataclass(frozen=True)
class StructuredSchema(Generic[T]):
    """A named JSON schema plus the validator for the matching Python type."""

    name: str
    json_schema: dict[str, Any]
    adapter: TypeAdapter[T] = field(compare=False)
    exact_length: int | None = None

    def validate(self, data: Any) -> T:
        """Validate decoded JSON. Raises ``pydantic.ValidationError`` or ``ValueError``."""
        value = self.adapter.validate_python(data)
        if self.exact_length is not None:
            length = len(value)  # type: ignore[arg-type]
            if length != self.exact_length:
                raise ValueError(
                    f"{self.name}: expected {self.exact_length} items, got {length}"
                )
        return value

    def with_length(self, count: int) -> StructuredSchema[T]:
        """Copy of an array schema that requires exactly ``count`` items."""
        if self.json_schema.get("type") != "array":
            raise TypeError(f"{self.name} is not an array schema")
        json_schema = copy.deepcopy(self.json_schema)
        json_schema["minItems"] = count
        json_schema["maxItems"] = count
        return StructuredSchema(
            name=self.name,
            json_schema=json_schema,
            adapter=self.adapter,
            exact_length=count,
        )

    def response_format(self) -> dict[str, Any]:
        """Provider-native ``response_format`` block."""
        return {
            "type": "json_schema",
            "json_schema": {
                "name": self.name,
                "schema": self.json_schema,
                "strict": True,
            },
        }


LEAK_FLAGS_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "has_digits": {"type": "boolean"},
        "has_century_terms": {"type": "boolean"},
        "has_spelled_year": {"type": "boolean"},
    },
    "required": ["has_digits", "has_century_terms", "has_spelled_year"],
    "additionalProperties": False,
}

EVENT_METADATA_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "difficulty": {"type": "number"},
        "category": {"type": "array", "items": {"type": "string"}},
        "era": {"type": "string"},
        "fame_level": {"type": "number"},
        "tags": {"type": "array", "items": {"type": "string"}},
    },
    "additionalProperties": False,
}

CANDIDATE_EVENT_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "canonical_title": {"type": "string"},
        "event_text": {"type": "string"},
        "geo": {"type": "string"},
        "difficulty_guess": {"type": "number"},
        "confidence": {"type": "number"},
        "leak_flags": LEAK_FLAGS_JSON_SCHEMA,
        "metadata": EVENT_METADATA_JSON_SCHEMA,
    },
    "required": [
        "canonical_title",
        "event_text",
        "geo",
        "difficulty_guess",
        "confidence",
        "leak_flags",
    ],
    "additionalProperties": False,
}

CRITIQUE_SCORES_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "factual": {"type": "number"},
        "leak_risk": {"type": "number"},
        "ambiguity": {"type": "number"},
        "guessability": {"type": "number"},
        "diversity": {"type": "number"},
    },
    "required": ["factual", "leak_risk", "ambiguity", "guessability", "diversity"],
    "additionalProperties": False,
}

GENERATOR_OUTPUT_SCHEMA: StructuredSchema[GeneratorOutput] = StructuredSchema(
    name="GeneratorOutput",
    json_schema={
        "type": "object",
        "properties": {
            "year": {
                "type": "object",
                "properties": {
                    "value": {"type": "number"},
                    "era": {"type": "string", "enum": ["BCE", "CE"]},
                    "digits": {"type": "number"},
                },
                "required": ["value", "era", "digits"],
                "additionalProperties": False,
            },
            "candidates": {"type": "array", "items": CANDIDATE_EVENT_JSON_SCHEMA},
        },
        "required": ["year", "candidates"],
        "additionalProperties": False,
    },
    adapter=TypeAdapter(GeneratorOutput),
)

CRITIQUE_LIST_SCHEMA: StructuredSchema[list[LLMCritique]] = StructuredSchema(
    name="CritiqueList",
    json_schema={
        "type": "array",
        "items": {
            "type": "object",
            "properties": {
                "event": CANDIDATE_EVENT_JSON_SCHEMA,
                "passed": {"type": "boolean"},
                "scores": CRITIQUE_SCORES_JSON_SCHEMA,
                "issues": {"type": "array", "items": {"type": "string"}},
                "rewrite_hints": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["passed", "scores", "issues", "rewrite_hints"],
            "additionalProperties": False,
        },
    },
    adapter=TypeAdapter(list[LLMCritique]),
)

REWRITE_LIST_SCHEMA: StructuredSchema[list[CandidateEvent]] = StructuredSchema(
    name="RewriteList",
    json_schema={"type": "array", "items": CANDIDATE_EVENT_JSON_SCHEMA},
    adapter=TypeAdapter(list[CandidateEvent]),
)
