# tests/test_config_validators.py

import config
from config import ClueForgeSettings


def test_stage_models_default_to_base_models():
    settings = ClueForgeSettings(
        PRIMARY_MODEL="big/model", FAST_MODEL="small/model", CRITIC_MODEL=None
    )
    assert settings.GENERATOR_MODEL == "big/model"
    assert settings.REVISER_MODEL == "big/model"
    assert settings.CRITIC_MODEL == "small/model"


def test_explicit_stage_model_wins():
    settings = ClueForgeSettings(CRITIC_MODEL="custom/critic")
    assert settings.CRITIC_MODEL == "custom/critic"


def test_missing_default_price_warns(monkeypatch):
    warnings: list[str] = []

    def fake_warning(msg: str, **_kw: object) -> None:
        warnings.append(msg)

    monkeypatch.setattr(config.logger, "warning", fake_warning)
    settings = ClueForgeSettings(MODEL_PRICING={"only/model": {"input": 1.0}})
    assert any("default" in msg for msg in warnings)
    assert settings.price_for("unknown/model") == {
        "input": 0.0,
        "output": 0.0,
        "reasoning": 0.0,
    }


def test_price_for_falls_back_to_default():
    settings = ClueForgeSettings()
    assert settings.price_for("unknown/model") == settings.MODEL_PRICING["default"]


def test_log_level_alias(monkeypatch):
    monkeypatch.setenv("CLUEFORGE_LOG_LEVEL", "DEBUG")
    assert ClueForgeSettings().LOG_LEVEL_STR == "DEBUG"
