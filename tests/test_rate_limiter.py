# tests/test_rate_limiter.py
import asyncio

import pytest
from orchestration.rate_limiter import RateLimiter


def test_invalid_configuration_rejected():
    with pytest.raises(ValueError):
        RateLimiter(0, 5)
    with pytest.raises(ValueError):
        RateLimiter(1.0, 0)


@pytest.mark.asyncio
async def test_burst_bounds_initial_admissions_and_order_is_fifo():
    limiter = RateLimiter(tokens_per_second=20.0, burst_capacity=3)
    admitted: list[int] = []
    in_flight = 0
    max_in_flight = 0

    async def work(index: int) -> int:
        nonlocal in_flight, max_in_flight
        admitted.append(index)
        in_flight += 1
        max_in_flight = max(max_in_flight, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return index

    results = await asyncio.gather(
        *(limiter.execute(lambda i=i: work(i)) for i in range(8))
    )

    assert results == list(range(8))
    assert admitted == list(range(8))
    assert max_in_flight <= 3


@pytest.mark.asyncio
async def test_admissions_wait_for_refill():
    limiter = RateLimiter(tokens_per_second=20.0, burst_capacity=2)
    loop = asyncio.get_running_loop()
    started = loop.time()

    async def noop() -> None:
        return None

    await asyncio.gather(*(limiter.execute(noop) for _ in range(5)))

    # Three admissions beyond the burst need three refills at 20/s.
    assert loop.time() - started >= 0.1
    assert limiter.available_tokens < 1


@pytest.mark.asyncio
async def test_errors_propagate_to_caller_only():
    limiter = RateLimiter(tokens_per_second=50.0, burst_capacity=2)

    async def boom() -> None:
        raise RuntimeError("provider down")

    async def fine() -> str:
        return "ok"

    outcomes = await asyncio.gather(
        limiter.execute(boom), limiter.execute(fine), return_exceptions=True
    )

    assert isinstance(outcomes[0], RuntimeError)
    assert outcomes[1] == "ok"
