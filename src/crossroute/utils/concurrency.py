"""Concurrency control for outbound quote calls.

Every RPC read and aggregator/bridge HTTP call made during discovery goes
through one shared ConcurrencyLimiter so fan-outs never exceed the
provider rate budget. Fan-outs themselves use gather_settled so a failing
branch never aborts its siblings.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConcurrencyLimiter:
    """Bounded pool of outbound call slots.

    Only leaf network calls acquire a slot. Orchestration code (finders,
    routers) must not hold a slot while awaiting nested work, otherwise a
    full pool would deadlock on itself.

    Example:
        limiter = ConcurrencyLimiter(8)
        async with limiter:
            await client.call(...)
    """

    def __init__(self, max_concurrency: int = 8, name: str = "outbound"):
        """Initialize the limiter.

        Args:
            max_concurrency: Maximum simultaneous holders
            name: Label used in log messages
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self.name = name
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._active = 0
        self.peak = 0

    @property
    def active(self) -> int:
        """Number of slots currently held."""
        return self._active

    async def __aenter__(self) -> "ConcurrencyLimiter":
        """Acquire a slot."""
        await self._semaphore.acquire()
        self._active += 1
        self.peak = max(self.peak, self._active)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Release the slot."""
        self._active -= 1
        self._semaphore.release()
        return False

    async def run(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Run one coroutine function inside a slot."""
        async with self:
            return await func(*args, **kwargs)


async def gather_settled(aws: Iterable[Awaitable[T]]) -> list[Union[T, BaseException]]:
    """Await all awaitables, returning results and exceptions in input order.

    Cancellation of the caller still cancels every branch.
    """
    return await asyncio.gather(*aws, return_exceptions=True)


def successes(results: Iterable[Union[T, BaseException]]) -> list[T]:
    """Filter settled results down to non-None successes."""
    return [r for r in results if r is not None and not isinstance(r, BaseException)]


def failures(results: Iterable[Union[T, BaseException]]) -> list[BaseException]:
    """Filter settled results down to raised exceptions."""
    return [r for r in results if isinstance(r, BaseException)]
