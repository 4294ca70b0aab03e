# processing/quality_scores.py
"""Per-run quality summary stored alongside each year's generation log."""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, Field

from models.event_models import CandidateEvent, CritiqueResult

WEIGHT_FACTUAL = 0.35
WEIGHT_GUESSABILITY = 0.35
WEIGHT_LEAK_RISK = 0.2
WEIGHT_AMBIGUITY = 0.1


class ScoreVector(BaseModel):
    factual: float = 0.0
    leak_risk: float = 0.0
    ambiguity: float = 0.0
    guessability: float = 0.0
    diversity: float | None = None


class RunQualityScores(BaseModel):
    version: int = 1
    candidate_count: int = 0
    pass_count: int = 0
    selected_count: int = 0
    overall: float = 0.0
    avg: ScoreVector = Field(default_factory=ScoreVector)
    selected_avg: ScoreVector = Field(default_factory=ScoreVector)


def average_scores(scores: Sequence[ScoreVector]) -> ScoreVector:
    if not scores:
        return ScoreVector()
    count = len(scores)
    diversities = [s.diversity for s in scores if s.diversity is not None]
    return ScoreVector(
        factual=sum(s.factual for s in scores) / count,
        leak_risk=sum(s.leak_risk for s in scores) / count,
        ambiguity=sum(s.ambiguity for s in scores) / count,
        guessability=sum(s.guessability for s in scores) / count,
        diversity=sum(diversities) / count if diversities else None,
    )


def overall_score(scores: ScoreVector) -> float:
    raw = (
        WEIGHT_FACTUAL * scores.factual
        + WEIGHT_GUESSABILITY * scores.guessability
        + WEIGHT_LEAK_RISK * (1 - scores.leak_risk)
        + WEIGHT_AMBIGUITY * (1 - scores.ambiguity)
    )
    return round(max(0.0, min(1.0, raw)), 4)


def _vector(critique: CritiqueResult) -> ScoreVector:
    return ScoreVector(**critique.scores.model_dump())


def compute_quality_scores(
    critiques: Sequence[CritiqueResult], selected: Sequence[CandidateEvent]
) -> RunQualityScores:
    """Summarize the final critique pass; ``overall`` reflects the selected events."""
    if not critiques:
        return RunQualityScores()

    avg = average_scores([_vector(c) for c in critiques])
    by_text = {c.event.event_text: _vector(c) for c in critiques}
    matched = [by_text[e.event_text] for e in selected if e.event_text in by_text]
    selected_avg = average_scores(matched) if matched else avg

    return RunQualityScores(
        candidate_count=len(critiques),
        pass_count=sum(1 for c in critiques if c.passed),
        selected_count=len(selected),
        overall=overall_score(selected_avg),
        avg=avg,
        selected_avg=selected_avg,
    )
