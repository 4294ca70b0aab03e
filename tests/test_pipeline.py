# tests/test_pipeline.py
from unittest.mock import AsyncMock

import pytest
from orchestration import pipeline as pipeline_module
from orchestration.event_store import InMemoryEventStore
from orchestration.pipeline import (
    FAILURE_INSUFFICIENT_QUALITY,
    YearPipeline,
    rebuild_candidate_set,
    select_top_events,
)

from core.usage import TokenUsage
from models import (
    CriticResult,
    CritiqueResult,
    CritiqueScores,
    GeneratorResult,
    LLMCallInfo,
    ReviserResult,
    YearSummary,
)


def critique(event, passed=True, guessability=0.8, factual=0.9, leak_risk=0.1):
    return CritiqueResult(
        event=event,
        passed=passed,
        scores=CritiqueScores(
            factual=factual, leak_risk=leak_risk, ambiguity=0.1, guessability=guessability
        ),
    )


def llm(request_id: str) -> LLMCallInfo:
    return LLMCallInfo(
        request_id=request_id,
        model="primary/model",
        usage=TokenUsage.of(10, 5),
        cost_usd=0.001,
    )


def generation(year, events):
    return GeneratorResult(
        year=year,
        era="CE",
        year_summary=YearSummary(value=year, era="CE", digits=4),
        candidates=events,
        llm=llm("gen"),
    )


def test_select_top_events_orders_and_caps(event_factory):
    events = [event_factory(f"Event {i} in Paris") for i in range(12)]
    results = [critique(e, guessability=0.5 + i * 0.01) for i, e in enumerate(events)]
    results.append(critique(event_factory("Failing in Rome"), passed=False, guessability=1.0))

    selected = select_top_events(results)

    assert len(selected) == 10
    assert selected[0].event_text == "Event 11 in Paris"
    assert all(e.event_text != "Failing in Rome" for e in selected)


def test_select_top_events_tie_breaks(event_factory):
    a = critique(event_factory("Alpha in Paris"), guessability=0.8, factual=0.8)
    b = critique(event_factory("Beta in Paris"), guessability=0.80001, factual=0.9)
    c = critique(
        event_factory("Gamma in Paris"), guessability=0.8, factual=0.9, leak_risk=0.0
    )

    ordered = [e.event_text for e in select_top_events([a, b, c])]

    assert ordered == ["Gamma in Paris", "Beta in Paris", "Alpha in Paris"]


def test_rebuild_replaces_failures_in_order(event_factory):
    keep = event_factory("Keep in Paris")
    bad1 = event_factory("Bad one in Paris")
    bad2 = event_factory("Bad two in Paris")
    fix1 = event_factory("Fixed one in Paris")
    results = [critique(bad1, passed=False), critique(keep), critique(bad2, passed=False)]

    rebuilt = rebuild_candidate_set(results, [fix1])

    assert [e.event_text for e in rebuilt] == [
        "Fixed one in Paris",
        "Keep in Paris",
        "Bad two in Paris",
    ]


@pytest.mark.asyncio
async def test_pipeline_revises_then_succeeds(event_factory, monkeypatch):
    records = []
    monkeypatch.setattr(
        pipeline_module,
        "log_stage_success",
        lambda stage, message, **fields: records.append((stage, message, fields)),
    )
    events = [event_factory(f"Clue {i} about Apollo") for i in range(8)]
    rewrites = [event_factory("Rewritten clue about Apollo")] * 3

    generator = AsyncMock()
    generator.generate_candidates.return_value = generation(1969, events)
    critic = AsyncMock()
    critic.critique_candidates.side_effect = [
        CriticResult(
            year=1969,
            era="CE",
            results=[critique(e, passed=i < 5) for i, e in enumerate(events)],
            llm=llm("critic-1"),
            deterministic_failures=2,
        ),
        CriticResult(
            year=1969,
            era="CE",
            results=[critique(e) for e in events[:5] + rewrites],
            llm=llm("critic-2"),
        ),
    ]
    reviser = AsyncMock()
    reviser.revise_candidates.return_value = ReviserResult(
        year=1969, era="CE", candidates=rewrites, llm=llm("rev")
    )
    store = InMemoryEventStore()

    result = await YearPipeline(generator, critic, reviser, store).execute_year_generation(
        1969
    )

    assert result.status == "success"
    assert result.attempts == 1
    assert result.critic_cycles == 2
    assert result.revisions == 1
    assert result.deterministic_failures == 2
    assert len(result.events) == 8
    assert result.usage["total"]["total_tokens"] == 60
    assert result.total_cost == pytest.approx(0.004)
    assert result.quality_scores.selected_count == 8
    assert len(store.events_for_year(1969)) == 8

    second_batch = critic.critique_candidates.await_args_list[1].args[2]
    assert second_batch[5:] == rewrites
    stage, message, fields = records[-1]
    assert stage == "orchestrator"
    assert message == "Pipeline completed for 1969"
    assert fields["status"] == "success"
    assert fields["tokens"]["total"] == 60


@pytest.mark.asyncio
async def test_pipeline_gives_up_after_attempt_budget(event_factory):
    events = [event_factory("Clue about Apollo")]
    generator = AsyncMock()
    generator.generate_candidates.return_value = generation(1969, events)
    critic = AsyncMock()
    critic.critique_candidates.return_value = CriticResult(
        year=1969,
        era="CE",
        results=[critique(events[0], passed=False)],
        llm=llm("critic"),
    )
    reviser = AsyncMock()
    reviser.revise_candidates.return_value = ReviserResult(
        year=1969, era="CE", candidates=events, llm=llm("rev")
    )
    store = InMemoryEventStore()

    result = await YearPipeline(generator, critic, reviser, store).execute_year_generation(
        1969
    )

    assert result.status == "failed"
    assert result.reason == FAILURE_INSUFFICIENT_QUALITY
    assert result.attempts == 4
    assert result.critic_cycles == 8
    assert result.revisions == 4
    assert generator.generate_candidates.await_count == 4
    assert store.events_for_year(1969) == []
