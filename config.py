# config.py
"""Configuration settings for the ClueForge event generation pipeline.
Uses Pydantic BaseSettings for automatic environment variable loading.
"""

from __future__ import annotations

import os
from typing import Any

import structlog
from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = structlog.get_logger()


class ClueForgeSettings(BaseSettings):
    """Full configuration for the ClueForge pipeline."""

    # API and Model Configuration
    OPENROUTER_API_BASE: str = "https://openrouter.ai/api/v1/chat/completions"
    OPENROUTER_API_KEY: str | None = None
    HTTP_REFERER: str = "https://chrondle.com"
    HTTP_TITLE: str = "ClueForge Event Pipeline"
    HTTPX_TIMEOUT: float = 120.0

    # Base Model Definitions
    PRIMARY_MODEL: str = "google/gemini-3-pro-preview"
    FAST_MODEL: str = "google/gemini-3-flash-preview"
    FALLBACK_MODEL: str = "openai/gpt-5-mini"

    # Stage model assignments (set from base models if not specified in env)
    GENERATOR_MODEL: str | None = None
    CRITIC_MODEL: str | None = None
    REVISER_MODEL: str | None = None

    # Temperature Settings
    TEMPERATURE_DEFAULT: float = 0.35
    TEMPERATURE_GENERATOR: float = 0.8
    TEMPERATURE_CRITIC: float = 0.2
    TEMPERATURE_REVISER: float = 0.6

    # Output token limits
    MAX_OUTPUT_TOKENS_DEFAULT: int = 6_000
    MAX_OUTPUT_TOKENS_GENERATOR: int = 32_000
    MAX_OUTPUT_TOKENS_CRITIC: int = 32_000
    MAX_OUTPUT_TOKENS_REVISER: int = 16_000

    # Reasoning effort per stage ("low" | "medium" | "high")
    THINKING_LEVEL_DEFAULT: str = "medium"
    THINKING_LEVEL_GENERATOR: str = "high"
    THINKING_LEVEL_CRITIC: str = "low"
    THINKING_LEVEL_REVISER: str = "medium"

    # Prompt caching
    CACHE_SYSTEM_PROMPT: bool = True
    CACHE_TTL_SECONDS: int = 86_400
    CACHE_HIT_INPUT_RATE: float = 0.1
    STRUCTURED_OUTPUTS: bool = True

    # LLM Call Settings & Fallbacks
    LLM_RETRY_ATTEMPTS: int = 3
    LLM_BACKOFF_BASE_SECONDS: float = 1.0
    LLM_MAX_BACKOFF_SECONDS: float = 15.0
    LLM_JITTER_RATIO: float = 0.25
    FALLBACK_CHARS_PER_TOKEN: float = 4.0

    # Pricing in USD per one million tokens. Reasoning tokens are billed on
    # their own line and never folded into output cost.
    MODEL_PRICING: dict[str, dict[str, float]] = {
        "default": {"input": 2.0, "output": 12.0, "reasoning": 0.0},
        "google/gemini-3-pro-preview": {
            "input": 2.0,
            "output": 12.0,
            "reasoning": 0.0,
        },
        "google/gemini-3-flash-preview": {
            "input": 0.5,
            "output": 3.0,
            "reasoning": 0.0,
        },
        "openai/gpt-5-mini": {"input": 0.25, "output": 2.0, "reasoning": 0.0},
    }

    # Concurrency and Rate Limiting
    RATE_LIMIT_TOKENS_PER_SECOND: float = 10.0
    RATE_LIMIT_BURST_CAPACITY: int = 20

    # Batch and pipeline limits
    DEFAULT_TARGET_COUNT: int = 10
    MIN_TARGET_COUNT: int = 1
    MAX_TARGET_COUNT: int = 50
    MAX_TOTAL_ATTEMPTS: int = 4
    MAX_CRITIC_CYCLES: int = 2
    MIN_REQUIRED_EVENTS: int = 6
    MAX_SELECTED_EVENTS: int = 10
    MAX_EVENT_WORDS: int = 20

    # Critic thresholds and blending
    CRITIC_LLM_WEIGHT: float = 0.7
    CRITIC_VALIDATOR_WEIGHT: float = 0.3
    THRESHOLD_FACTUAL_MIN: float = 0.75
    THRESHOLD_LEAK_RISK_MAX: float = 0.15
    THRESHOLD_AMBIGUITY_MAX: float = 0.25
    THRESHOLD_GUESSABILITY_MIN: float = 0.4
    LEARNING_LEAK_RISK_TRIGGER: float = 0.6

    # Quality validator / semantic leakage
    LEAKY_PHRASES_FILE: str = os.path.join("data", "leaky_phrases.json")
    LEAKAGE_EMBEDDING_DIM: int = 64
    LEAKAGE_FAIL_THRESHOLD: float = 0.6
    METADATA_QUALITY_MIN: float = 0.5
    LEARNED_PHRASE_MAX_CHARS: int = 180

    # Coverage planning
    YEAR_RANGE_START: int = -776
    YEAR_RANGE_END: int = 2008
    MIN_EVENTS_PER_YEAR: int = 6
    LOW_QUALITY_FLAG_RATIO: float = 0.4
    DEMAND_SHARE: float = 0.8
    AVG_COST_PER_YEAR_USD: float = 0.12

    # Logging & UI
    LOG_LEVEL_STR: str = Field("INFO", alias="CLUEFORGE_LOG_LEVEL")
    LOG_FORMAT: str = (
        "%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] - %(message)s"
    )
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    LOG_FILE: str | None = "clueforge_run.log"
    LOG_DIR: str = "logs"
    ENABLE_RICH_PROGRESS: bool = True

    @model_validator(mode="after")
    def set_dynamic_model_defaults(self) -> ClueForgeSettings:
        if self.GENERATOR_MODEL is None:
            self.GENERATOR_MODEL = self.PRIMARY_MODEL
        if self.CRITIC_MODEL is None:
            self.CRITIC_MODEL = self.FAST_MODEL
        if self.REVISER_MODEL is None:
            self.REVISER_MODEL = self.PRIMARY_MODEL
        if "default" not in self.MODEL_PRICING:
            logger.warning(
                "MODEL_PRICING has no 'default' entry; unknown models will cost 0."
            )
        return self

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", populate_by_name=True, extra="ignore"
    )

    def price_for(self, model_name: str) -> dict[str, Any]:
        """Return the price entry for ``model_name`` or the default entry."""
        return self.MODEL_PRICING.get(
            model_name,
            self.MODEL_PRICING.get(
                "default", {"input": 0.0, "output": 0.0, "reasoning": 0.0}
            ),
        )


settings = ClueForgeSettings()
