# tests/test_generator_agent.py
import pytest
from agents import generator_agent
from agents.generator_agent import (
    GeneratorAgent,
    build_generator_system_prompt,
    build_generator_user_prompt,
    build_period_context,
    digit_count,
)
from core.llm_interface import GenerationResult
from core.usage import CostBreakdown, TokenUsage

from models import GeneratorOutput, YearSummary


class StubLLM:
    def __init__(self, data):
        self.data = data
        self.requests = []

    async def generate(self, request):
        self.requests.append(request)
        return GenerationResult(
            data=self.data,
            raw_text="{}",
            request_id="req-gen",
            model="primary/model",
            usage=TokenUsage.of(100, 50),
            cost=CostBreakdown(total_usd=0.001),
        )


def test_digit_count_clamps():
    assert digit_count(-44) == 2
    assert digit_count(0) == 1
    assert digit_count(1969) == 4


def test_bce_prompt_carries_ancient_context():
    prompt = build_generator_user_prompt(-44, "BCE")
    assert "Target year: 44 (BCE)" in prompt
    assert "Structure events around people" in prompt
    assert "Hellenistic period" in prompt
    assert "Early modern" not in prompt
    assert "Roman Empire period" not in prompt


def test_modern_prompt_has_no_context_block():
    prompt = build_generator_user_prompt(1969, "CE")
    assert "Target year: 1969 (CE)" in prompt
    assert "Context:" not in prompt
    assert '"digits": 4' in prompt


def test_period_context_by_range():
    assert build_period_context(79, "CE")[0].startswith("Context: Early Roman Empire")
    assert build_period_context(1600, "CE")[0].startswith("Context: Early modern")
    assert build_period_context(-400, "BCE")[-1].startswith("Classical period")
    assert build_period_context(-1200, "BCE")[-1].startswith("Early civilizations")
    assert build_period_context(1200, "CE") == []


def test_system_prompt_is_static():
    assert build_generator_system_prompt() == build_generator_system_prompt()


@pytest.mark.asyncio
async def test_generate_candidates_sanitizes_text(event_factory):
    messy = event_factory(
        "  Armstrong   steps onto\nthe Moon  ",
        canonical_title="  Moon landing ",
        geo=" USA ",
    )
    output = GeneratorOutput(
        year=YearSummary(value=1969, era="CE", digits=4), candidates=[messy]
    )
    llm = StubLLM(output)
    agent = GeneratorAgent(llm, model_name="primary/model")

    result = await agent.generate_candidates(1969, "CE")

    candidate = result.candidates[0]
    assert candidate.event_text == "Armstrong steps onto the Moon"
    assert candidate.canonical_title == "Moon landing"
    assert candidate.geo == "USA"
    assert result.year_summary.digits == 4
    assert result.llm.request_id == "req-gen"
    request = llm.requests[0]
    assert request.options.namespace == "generator"
    assert request.metadata["year"] == 1969


@pytest.mark.asyncio
async def test_year_mismatch_is_reported_but_not_fatal(monkeypatch, event_factory):
    errors = []
    monkeypatch.setattr(
        generator_agent,
        "log_stage_error",
        lambda stage, error, **fields: errors.append({"stage": stage, "error": error}),
    )
    output = GeneratorOutput(
        year=YearSummary(value=1970, era="CE", digits=4),
        candidates=[event_factory()],
    )
    agent = GeneratorAgent(StubLLM(output), model_name="primary/model")

    result = await agent.generate_candidates(1969, "CE")

    assert len(result.candidates) == 1
    assert errors and errors[0]["error"] == "LLM year mismatch"
    assert errors[0]["stage"] == "generator"
