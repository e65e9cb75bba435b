from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass(slots=True)
class Settled(Generic[T]):
    """Outcome of one task in a settled fan-out: either a value or an error."""

    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def value_or(self, default: T) -> T:
        if self.error is not None or self.value is None:
            return default
        return self.value


async def gather_settled(*aws: Awaitable[T]) -> list[Settled[T]]:
    """Run awaitables concurrently and collect each outcome.

    One task failing never cancels its siblings or fails the batch.
    """
    raw_results = await asyncio.gather(*aws, return_exceptions=True)
    settled: list[Settled[T]] = []
    for item in raw_results:
        if isinstance(item, BaseException):
            settled.append(Settled(error=item))
        else:
            settled.append(Settled(value=item))
    return settled


class RateLimiter:
    """Allow at most ``max_calls`` starts within any ``period`` seconds."""

    def __init__(
        self,
        max_calls: int,
        period: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_calls <= 0:
            raise ValueError("max_calls must be >= 1")
        if period <= 0:
            raise ValueError("period must be > 0")
        self.max_calls = max_calls
        self.period = period
        self._clock = clock
        self._sleep = sleep
        self._starts: deque[float] = deque()
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        async with self._lock:
            while True:
                now = self._clock()
                while self._starts and now - self._starts[0] >= self.period:
                    self._starts.popleft()
                if len(self._starts) < self.max_calls:
                    self._starts.append(now)
                    return
                await self._sleep(self.period - (now - self._starts[0]))
