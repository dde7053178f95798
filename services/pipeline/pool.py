# services/pipeline/pool.py
"""
Bounded worker pool.

Items are processed in consecutive batches of ``limit``. Inside a batch the
calls run concurrently (dispatched in input order, completing in any order);
batch N+1 only starts once batch N is fully collected and the inter-batch
delay has elapsed. Results come back in input order.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from loguru import logger

T = TypeVar("T")
R = TypeVar("R")

Sleep = Callable[[float], Awaitable[None]]


class BoundedPool:
    def __init__(
        self,
        limit: int = 4,
        batch_delay_ms: float = 0,
        item_delay_ms: float = 0,
        sleep: Optional[Sleep] = None,
        name: str = "pool",
    ):
        self.limit = max(1, int(limit))
        self.batch_delay_ms = max(0.0, float(batch_delay_ms))
        self.item_delay_ms = max(0.0, float(item_delay_ms))
        self._sleep = sleep or asyncio.sleep
        self.name = name

    async def _run_one(self, fn: Callable[[T], Awaitable[R]], item: T) -> R:
        result = await fn(item)
        if self.item_delay_ms:
            await self._sleep(self.item_delay_ms / 1000.0)
        return result

    async def map(self, fn: Callable[[T], Awaitable[R]], items: Sequence[T]) -> List[R]:
        """
        Apply ``fn`` to every item with bounded concurrency.

        ``fn`` is expected to turn its own failures into values; an exception
        escaping it propagates once the current batch has settled.
        """
        results: List[R] = []
        total = len(items)
        for start in range(0, total, self.limit):
            batch = items[start:start + self.limit]
            outcomes = await asyncio.gather(
                *(self._run_one(fn, item) for item in batch), return_exceptions=True
            )
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome
            results.extend(outcomes)
            logger.debug(f"{self.name}: {len(results)}/{total} done")
            if start + self.limit < total and self.batch_delay_ms:
                await self._sleep(self.batch_delay_ms / 1000.0)
        return results
