"""
Bounded concurrency shared by the indexer, the verification pass and the browser.

A counting semaphore: at most max_concurrency operations hold a slot at once,
others wait. Admission order is not guaranteed to be FIFO.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from pubapi_search.core.errors import ConcurrencyCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConcurrencyLimiter:
    """Acquire-before-call / release-after-call around every admitted operation."""

    def __init__(self, max_concurrency: int, name: str = "limiter") -> None:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self.max_concurrency = max_concurrency
        self.name = name
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._in_flight = 0
        self.peak = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @asynccontextmanager
    async def slot(self):
        """
        Hold one slot for the body of the block. Released on every exit path.

        Cancellation is re-raised as ConcurrencyCancelledError, a CancelledError
        subclass. asyncio.wait_for (and asyncio.timeout on 3.12+) still turn it
        into TimeoutError; asyncio.timeout on 3.11 matches CancelledError exactly
        and lets the subclass through, so use wait_for there.
        """
        try:
            await self._semaphore.acquire()
        except asyncio.CancelledError as e:
            logger.info("[%s:slot] cancelled while queued", self.name)
            raise ConcurrencyCancelledError(f"{self.name}: cancelled while queued") from e
        self._in_flight += 1
        self.peak = max(self.peak, self._in_flight)
        try:
            yield
        except ConcurrencyCancelledError:
            raise
        except asyncio.CancelledError as e:
            logger.info("[%s:slot] cancelled in flight", self.name)
            raise ConcurrencyCancelledError(f"{self.name}: cancelled in flight") from e
        finally:
            self._in_flight -= 1
            self._semaphore.release()

    async def run(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Call fn once a slot is free. fn is not started if cancelled while queued."""
        async with self.slot():
            return await fn(*args, **kwargs)

    async def gather(
        self,
        factories: Iterable[Callable[[], Awaitable[T]]],
        return_exceptions: bool = False,
    ) -> list:
        """
        Run each zero-arg coroutine factory under the limiter.

        Results come back in input order. With return_exceptions=True, an
        exception raised by one item takes that item's place in the output.
        """
        factories = list(factories)
        logger.info("[%s:gather] IN  items=%d max_concurrency=%d", self.name, len(factories), self.max_concurrency)
        results = await asyncio.gather(
            *(self.run(factory) for factory in factories),
            return_exceptions=return_exceptions,
        )
        logger.info("[%s:gather] OUT items=%d peak=%d", self.name, len(results), self.peak)
        return list(results)
