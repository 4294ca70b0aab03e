import sys

import main
import pytest
from core.llm_interface import LLMConfigurationError
from orchestration import cli_runner
from orchestration.models import BatchResult


def test_main_passes_target_count(monkeypatch):
    calls = []

    async def fake_batch(target_count=None):
        calls.append(target_count)
        return BatchResult(success_count=1)

    monkeypatch.setattr(cli_runner, "setup_logging", lambda: None)
    monkeypatch.setattr(cli_runner, "generate_daily_batch", fake_batch)
    monkeypatch.setattr(sys, "argv", ["prog", "12"])

    main.main()

    assert calls == [12]


def test_main_defaults_target_count(monkeypatch):
    calls = []

    async def fake_batch(target_count=None):
        calls.append(target_count)
        return BatchResult()

    monkeypatch.setattr(cli_runner, "setup_logging", lambda: None)
    monkeypatch.setattr(cli_runner, "generate_daily_batch", fake_batch)
    monkeypatch.setattr(sys, "argv", ["prog"])

    main.main()

    assert calls == [None]


def test_configuration_error_exits_nonzero(monkeypatch):
    async def fake_batch(target_count=None):
        raise LLMConfigurationError("OPENROUTER_API_KEY is not set")

    monkeypatch.setattr(cli_runner, "setup_logging", lambda: None)
    monkeypatch.setattr(cli_runner, "generate_daily_batch", fake_batch)

    with pytest.raises(SystemExit) as excinfo:
        cli_runner.run(5)
    assert excinfo.value.code == 2


def test_build_orchestrator_wires_components(monkeypatch, tmp_path):
    import httpx

    monkeypatch.setattr(
        cli_runner.settings, "LEAKY_PHRASES_FILE", str(tmp_path / "phrases.json")
    )
    orchestrator = cli_runner.build_orchestrator(httpx.AsyncClient())

    assert orchestrator.rate_limiter.burst_capacity == 20
    assert orchestrator.pipeline.store is orchestrator.coverage.store
