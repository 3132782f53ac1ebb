"""Batch pacing for provider calls.

Bulk operations fan out over many zones. :func:`run_in_batches` runs a worker
over fixed-size batches and asks a :class:`BatchPolicy` how long to wait
between them. Two policies ship: a fixed inter-batch delay and a token bucket
that also honours ``Retry-After`` hints from the provider.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import Protocol, TypeVar

logger = logging.getLogger(__name__)

_T = TypeVar("_T")
_R = TypeVar("_R")


class BatchPolicy(Protocol):
    batch_size: int

    async def acquire(self) -> None:
        """Wait until one more request may be issued."""
        ...

    async def pause(self) -> None:
        """Wait between two batches."""
        ...

    def note_retry_after(self, seconds: float) -> None:
        """Record a provider back-off hint."""
        ...


class FixedDelayPolicy:
    """Constant delay between batches, no per-request limit."""

    def __init__(self, batch_size: int = 5, delay_seconds: float = 0.0) -> None:
        if batch_size < 1:
            msg = "batch_size must be >= 1"
            raise ValueError(msg)
        self.batch_size = batch_size
        self.delay_seconds = max(0.0, delay_seconds)
        self._backoff = 0.0

    async def acquire(self) -> None:
        return None

    async def pause(self) -> None:
        delay = max(self.delay_seconds, self._backoff)
        self._backoff = 0.0
        if delay > 0:
            await asyncio.sleep(delay)

    def note_retry_after(self, seconds: float) -> None:
        self._backoff = max(self._backoff, seconds)


class TokenBucketPolicy:
    """Token bucket: ``rate`` requests per second with ``burst`` capacity."""

    def __init__(
        self,
        batch_size: int = 5,
        *,
        rate: float = 4.0,
        burst: int = 8,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if batch_size < 1 or rate <= 0 or burst < 1:
            msg = "batch_size, rate and burst must be positive"
            raise ValueError(msg)
        self.batch_size = batch_size
        self.rate = rate
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._updated = clock()
        self._blocked_until = 0.0
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        self._tokens = min(float(self.burst), self._tokens + (now - self._updated) * self.rate)
        self._updated = now

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                now = self._clock()
                if now < self._blocked_until:
                    await asyncio.sleep(self._blocked_until - now)
                    continue
                self._refill()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return
                await asyncio.sleep((1.0 - self._tokens) / self.rate)

    async def pause(self) -> None:
        return None

    def note_retry_after(self, seconds: float) -> None:
        self._blocked_until = max(self._blocked_until, self._clock() + seconds)
        self._tokens = 0.0


async def run_in_batches(
    items: Sequence[_T],
    worker: Callable[[_T], Awaitable[_R]],
    policy: BatchPolicy,
) -> AsyncIterator[list[_R]]:
    """Run *worker* over *items* in batches, yielding each batch's results.

    Results within a batch keep input order. Items inside a batch run
    concurrently; batches run one after another with ``policy.pause()``
    between them. The worker is responsible for turning its own failures
    into result values.
    """

    async def guarded(item: _T) -> _R:
        await policy.acquire()
        return await worker(item)

    size = policy.batch_size
    total = len(items)
    for start in range(0, total, size):
        batch = items[start : start + size]
        results = await asyncio.gather(*(guarded(item) for item in batch))
        logger.debug("Batch %d-%d of %d done", start + 1, start + len(batch), total)
        yield list(results)
        if start + size < total:
            await policy.pause()
