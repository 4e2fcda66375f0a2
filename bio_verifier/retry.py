from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[object]]


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Bounded attempt loop with a fixed delay between attempts."""

    max_attempts: int
    delay_seconds: float = 0.0

    async def run(
        self,
        attempt: Callable[[int], Awaitable[T]],
        *,
        stop: Callable[[T], bool] = lambda _result: False,
        sleep: Sleep = asyncio.sleep,
    ) -> RetryOutcome[T]:
        """Call ``attempt(n)`` until ``stop`` holds or attempts run out."""
        if self.max_attempts < 1:
            raise ValueError("RetryPolicy needs at least one attempt")

        result: T
        for number in range(1, self.max_attempts + 1):
            result = await attempt(number)
            if stop(result):
                return RetryOutcome(result=result, attempts=number, stopped=True)
            if number < self.max_attempts and self.delay_seconds > 0:
                await sleep(self.delay_seconds)
        return RetryOutcome(result=result, attempts=self.max_attempts, stopped=False)


@dataclass(slots=True)
class RetryOutcome(Generic[T]):
    result: T
    attempts: int
    stopped: bool
