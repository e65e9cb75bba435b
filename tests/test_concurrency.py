from __future__ import annotations

import asyncio

import pytest

from sourcefinder.services.concurrency import RateLimiter, Settled, gather_settled


@pytest.mark.asyncio
async def test_gather_settled_isolates_failures():
    async def ok(value):
        await asyncio.sleep(0)
        return value

    async def boom():
        raise RuntimeError("nope")

    first, second, third = await gather_settled(ok(1), boom(), ok(3))

    assert first.ok and first.value == 1
    assert not second.ok
    assert isinstance(second.error, RuntimeError)
    assert second.value_or([]) == []
    assert third.value_or(0) == 3


def test_settled_value_or_handles_none_value():
    assert Settled(value=None).value_or("fallback") == "fallback"


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.mark.asyncio
async def test_rate_limiter_waits_for_window_to_free():
    clock = FakeClock()
    limiter = RateLimiter(2, 1.0, clock=clock, sleep=clock.sleep)

    await limiter.wait()
    clock.now = 0.25
    await limiter.wait()
    await limiter.wait()

    assert clock.sleeps == [pytest.approx(0.75)]
    assert clock.now == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_rate_limiter_does_not_sleep_under_limit():
    clock = FakeClock()
    limiter = RateLimiter(5, 1.0, clock=clock, sleep=clock.sleep)

    for _ in range(5):
        await limiter.wait()

    assert clock.sleeps == []


@pytest.mark.parametrize(("max_calls", "period"), [(0, 1.0), (1, 0.0)])
def test_rate_limiter_rejects_invalid_configuration(max_calls, period):
    with pytest.raises(ValueError):
        RateLimiter(max_calls, period)


@pytest.mark.asyncio
async def test_gather_settled_records_cancellation_as_error():
    async def cancelled():
        raise asyncio.CancelledError()

    async def ok():
        return ["result"]

    first, second = await gather_settled(cancelled(), ok())

    assert not first.ok
    assert isinstance(first.error, asyncio.CancelledError)
    assert first.value_or([]) == []
    assert second.value == ["result"]
