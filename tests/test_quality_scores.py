# tests/test_quality_scores.py
import pytest

from models import CritiqueResult, CritiqueScores
from processing.quality_scores import (
    ScoreVector,
    average_scores,
    compute_quality_scores,
    overall_score,
)


def critique(event, passed=True, **scores):
    values = {"factual": 0.9, "leak_risk": 0.1, "ambiguity": 0.2, "guessability": 0.8}
    values.update(scores)
    return CritiqueResult(event=event, passed=passed, scores=CritiqueScores(**values))


def test_overall_score_weights():
    vector = ScoreVector(factual=1.0, leak_risk=0.0, ambiguity=0.0, guessability=1.0)
    assert overall_score(vector) == 1.0
    vector = ScoreVector(factual=0.8, leak_risk=0.2, ambiguity=0.4, guessability=0.6)
    assert overall_score(vector) == pytest.approx(
        round(0.35 * 0.8 + 0.35 * 0.6 + 0.2 * 0.8 + 0.1 * 0.6, 4)
    )


def test_average_scores_empty():
    assert average_scores([]) == ScoreVector()


def test_quality_scores_use_selected_events(event_factory):
    best = event_factory("Caesar crosses the Rubicon")
    weak = event_factory("Pompey flees to Greece")
    critiques = [
        critique(best, factual=1.0, guessability=1.0, leak_risk=0.0, ambiguity=0.0),
        critique(weak, passed=False, factual=0.2, guessability=0.2),
    ]

    scores = compute_quality_scores(critiques, [best])

    assert scores.candidate_count == 2
    assert scores.pass_count == 1
    assert scores.selected_count == 1
    assert scores.overall == 1.0
    assert scores.avg.factual == pytest.approx(0.6)


def test_quality_scores_without_critiques():
    assert compute_quality_scores([], []).candidate_count == 0
