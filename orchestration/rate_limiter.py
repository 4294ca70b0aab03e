# orchestration/rate_limiter.py
"""Token-bucket admission control for outbound LLM work."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RateLimiter:
    """Admit callables at ``tokens_per_second`` with bursts up to ``burst_capacity``.

    Callers are admitted in FIFO order. Each admission consumes one token;
    tokens come back only through time-based refill, never on completion.
    """

    def __init__(
        self,
        tokens_per_second: float,
        burst_capacity: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if tokens_per_second <= 0:
            raise ValueError("tokens_per_second must be positive")
        if burst_capacity < 1:
            raise ValueError("burst_capacity must be at least 1")
        self.tokens_per_second = tokens_per_second
        self.burst_capacity = burst_capacity
        self._clock = clock
        self._tokens = float(burst_capacity)
        self._last_refill = clock()
        self._lock = asyncio.Lock()
        self._waiters: deque[asyncio.Future[None]] = deque()
        self._dispatcher: asyncio.Task[None] | None = None

    @property
    def available_tokens(self) -> float:
        return self._tokens

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Wait for admission, then run ``fn``; its errors propagate to this caller."""
        await self._acquire()
        return await fn()

    async def _acquire(self) -> None:
        ticket: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(ticket)
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.create_task(self._dispatch())
        await ticket

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(
            float(self.burst_capacity), self._tokens + elapsed * self.tokens_per_second
        )
        self._last_refill = now

    async def _dispatch(self) -> None:
        while self._waiters:
            async with self._lock:
                self._refill()
                while self._waiters and self._tokens >= 1:
                    ticket = self._waiters.popleft()
                    if ticket.done():
                        continue
                    self._tokens -= 1
                    ticket.set_result(None)
                wait_seconds = (1 - self._tokens) / self.tokens_per_second
            if self._waiters:
                logger.debug(
                    "Rate limiter waiting for refill.",
                    queued=len(self._waiters),
                    wait_seconds=round(wait_seconds, 4),
                )
                await asyncio.sleep(max(wait_seconds, 0.0))
