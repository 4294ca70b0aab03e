# tests/test_reviser_agent.py
import pytest
from agents.reviser_agent import ReviserAgent
from core.llm_interface import GenerationResult
from core.usage import CostBreakdown, TokenUsage

from models import CritiqueResult, CritiqueScores


class StubLLM:
    def __init__(self, data):
        self.data = data
        self.requests = []

    async def generate(self, request):
        self.requests.append(request)
        return GenerationResult(
            data=self.data,
            raw_text="[]",
            request_id="req-reviser",
            model="primary/model",
            usage=TokenUsage.of(150, 60),
            cost=CostBreakdown(total_usd=0.0015),
        )


def failing_critique(event):
    return CritiqueResult(
        event=event,
        passed=False,
        scores=CritiqueScores(
            factual=0.9, leak_risk=0.6, ambiguity=0.1, guessability=0.7
        ),
        issues=["Contains year leakage"],
        rewrite_hints=["Remove numbers ≥10"],
    )


@pytest.mark.asyncio
async def test_no_failures_means_no_call():
    llm = StubLLM([])
    result = await ReviserAgent(llm).revise_candidates([], 1066, "CE")
    assert result.rewrites == []
    assert result.llm.request_id == ""
    assert not result.llm.issued
    assert llm.requests == []


@pytest.mark.asyncio
async def test_rewrites_are_sanitized_and_ordered(event_factory):
    original = event_factory("Battle of 1066 decides realm")
    rewrite = event_factory(
        "  William   defeats Harold near Hastings ",
        canonical_title=" Hastings ",
        geo="  England ",
        metadata={"era": "medieval"},
    )
    llm = StubLLM([rewrite])

    result = await ReviserAgent(llm, model_name="primary/model").revise_candidates(
        [failing_critique(original)], 1066, "CE"
    )

    assert [c.event_text for c in result.rewrites] == [
        "William defeats Harold near Hastings"
    ]
    assert result.rewrites[0].canonical_title == "Hastings"
    assert result.rewrites[0].geo == "England"
    assert result.llm.issued
    request = llm.requests[0]
    assert request.schema.exact_length == 1
    assert "Remove numbers ≥10" in request.user_prompt
    assert "Battle of 1066 decides realm" in request.user_prompt
    assert '"era": "medieval"' in request.user_prompt
