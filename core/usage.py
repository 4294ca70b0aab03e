# core/usage.py
from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class TokenUsage:
    """LLM token usage metrics for a single call.

    Reasoning tokens are tracked apart from output tokens because providers
    price them independently.
    """

    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def of(
        cls, input_tokens: int, output_tokens: int, reasoning_tokens: int = 0
    ) -> TokenUsage:
        """Build a usage record whose total is the sum of its parts."""
        return cls(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            reasoning_tokens=reasoning_tokens,
            total_tokens=input_tokens + output_tokens + reasoning_tokens,
        )

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class CostBreakdown:
    """USD cost of a single call, split by token class."""

    input_usd: float = 0.0
    output_usd: float = 0.0
    reasoning_usd: float = 0.0
    cache_savings_usd: float = 0.0
    total_usd: float = 0.0


@dataclass
class UsageTotals:
    """Accumulated usage across many calls."""

    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int = 0
    total_tokens: int = 0
    cost_usd: float = 0.0
    cache_hits: int = 0
    cache_misses: int = 0
    fallbacks: int = 0

    def add(
        self,
        usage: TokenUsage | None,
        cost_usd: float = 0.0,
        cache_hit: bool = False,
        fallback_from: str | None = None,
    ) -> None:
        """Accumulate one call's usage, cost and cache/fallback status."""
        if usage is None:
            return
        self.input_tokens += usage.input_tokens
        self.output_tokens += usage.output_tokens
        self.reasoning_tokens += usage.reasoning_tokens
        self.total_tokens += usage.total_tokens
        self.cost_usd += cost_usd
        if cache_hit:
            self.cache_hits += 1
        else:
            self.cache_misses += 1
        if fallback_from:
            self.fallbacks += 1

    def get_if_used(self) -> dict[str, float] | None:
        """Return totals only if any tokens were accumulated."""
        if self.total_tokens:
            return asdict(self)
        return None
