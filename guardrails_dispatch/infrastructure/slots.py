"""
Slot pool: the counting semaphore that caps concurrent executor calls.
"""

import asyncio
import logging

from guardrails_dispatch.context import Context, wait_or_cancel

logger = logging.getLogger(__name__)


class SlotPool:
    """
    Fixed-capacity pool of concurrency slots.

    acquire() and release() must run on the dispatcher's event loop; the
    counters may be read from any thread.
    """

    def __init__(self, capacity: int) -> None:
        self._capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self._in_use = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_use(self) -> int:
        return self._in_use

    async def acquire(self, context: Context) -> None:
        """
        Wait for a free slot, or for the context to end.

        Raises:
            CancellationError: If the context ended first; no slot is held.
        """
        await wait_or_cancel(context, self._semaphore.acquire())
        self._in_use += 1
        if context.is_done():
            self.release()
            raise context.error()

    def release(self) -> None:
        self._in_use -= 1
        self._semaphore.release()
