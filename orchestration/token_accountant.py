from __future__ import annotations

import logging
from enum import Enum

from core.usage import UsageTotals

from models import LLMCallInfo

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Stages for token accounting."""

    GENERATOR = "generator"
    CRITIC = "critic"
    REVISER = "reviser"


class TokenAccountant:
    """Accumulate and log token usage and cost across stages."""

    def __init__(self) -> None:
        self.totals = UsageTotals()
        self.stage_totals: dict[str, UsageTotals] = {}

    def record_usage(self, stage: Stage | str, call: LLMCallInfo | None) -> None:
        """Record one stage call. Calls that were never issued are ignored."""
        stage_name = stage.value if isinstance(stage, Stage) else stage
        if call is None or not call.issued:
            logger.debug("Activity: '%s' issued no LLM call; nothing recorded.", stage_name)
            return

        stage_totals = self.stage_totals.setdefault(stage_name, UsageTotals())
        for totals in (stage_totals, self.totals):
            totals.add(
                call.usage,
                cost_usd=call.cost_usd,
                cache_hit=call.cache_hit,
                fallback_from=call.fallback_from,
            )
        logger.info(
            "Activity: Tokens from '%s': %s (cost $%.6f). Total this run: %s",
            stage_name,
            call.usage.total_tokens,
            call.cost_usd,
            self.totals.total_tokens,
        )

    def get_stage_totals(self, stage: Stage | str) -> UsageTotals:
        """Return accumulated usage for a stage."""
        stage_name = stage.value if isinstance(stage, Stage) else stage
        return self.stage_totals.get(stage_name, UsageTotals())

    @property
    def total_cost(self) -> float:
        return round(self.totals.cost_usd, 6)

    def summary(self) -> dict[str, dict[str, float]]:
        summary = {name: vars(totals).copy() for name, totals in self.stage_totals.items()}
        summary["total"] = vars(self.totals).copy()
        return summary
