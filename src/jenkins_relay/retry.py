import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from sanic.log import logger

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded exponential backoff.

    The first call is not counted as a retry: with ``max_retries=5``,
    ``base_delay=1`` and ``multiplier=2`` the operation runs at most six
    times, sleeping 1, 2, 4, 8 and 16 seconds in between.
    """

    max_retries: int = 5
    base_delay: float = 1.0
    multiplier: float = 2.0

    def delays(self) -> list[float]:
        return [self.base_delay * self.multiplier**i for i in range(self.max_retries)]

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        should_retry: Callable[[Exception], bool],
        description: str = "operation",
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> T:
        sleep = sleep or asyncio.sleep
        delays = self.delays()
        total = len(delays) + 1
        for attempt in range(1, total + 1):
            try:
                return await operation()
            except Exception as e:
                logger.error(
                    "Error %s (attempt %d/%d): %s", description, attempt, total, e
                )
                if attempt == total or not should_retry(e):
                    raise
                await sleep(delays[attempt - 1])
