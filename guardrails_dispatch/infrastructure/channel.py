"""
Result conduits handed back to callers: a single-delivery ResultChannel per
task and an ordered ResultStream per batch.
"""

import asyncio
import concurrent.futures
import threading
from typing import (
    AsyncIterator,
    Callable,
    Generator,
    Generic,
    Iterator,
    List,
    Optional,
    TypeVar,
)

from guardrails_dispatch.context import Context
from guardrails_dispatch.domain.result import AsyncResult

T = TypeVar("T")


class ResultChannel(Generic[T]):
    """
    Delivers exactly one AsyncResult, then is closed.

    Safe to wait on from any thread with get(), or to await from any event loop.
    """

    def __init__(self) -> None:
        self._future: concurrent.futures.Future = concurrent.futures.Future()
        self._lock = threading.Lock()

    @classmethod
    def resolved(cls, result: AsyncResult[T]) -> "ResultChannel[T]":
        """A channel that already carries its result."""
        channel: ResultChannel[T] = cls()
        channel.deliver(result)
        return channel

    def deliver(self, result: AsyncResult[T]) -> None:
        """Deliver the channel's only result. A second delivery is a bug."""
        with self._lock:
            if self._future.done():
                raise RuntimeError("result already delivered")
            self._future.set_result(result)

    @property
    def closed(self) -> bool:
        return self._future.done()

    def get(self, timeout: Optional[float] = None) -> AsyncResult[T]:
        """
        Block until the result is delivered.

        Raises:
            TimeoutError: If nothing was delivered within timeout seconds.
        """
        try:
            return self._future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            raise TimeoutError(f"No result delivered within {timeout} seconds") from None

    def add_done_callback(self, callback: Callable[[AsyncResult[T]], None]) -> None:
        """Call callback with the result once it is delivered."""
        self._future.add_done_callback(lambda future: callback(future.result()))

    def __iter__(self) -> Iterator[AsyncResult[T]]:
        yield self.get()

    def __await__(self) -> Generator[None, None, AsyncResult[T]]:
        return asyncio.wrap_future(self._future).__await__()


class ResultStream(Generic[T]):
    """
    Results of a batch in submission order.

    Each result is written at its own index as it completes; iteration starts
    once every slot is filled and stops early if the caller's context ends.
    """

    def __init__(self, size: int, context: Context) -> None:
        self._context = context
        self._results: List[Optional[AsyncResult[T]]] = [None] * size
        self._remaining = size
        self._lock = threading.Lock()
        self._complete: concurrent.futures.Future = concurrent.futures.Future()
        if size == 0:
            self._complete.set_result(None)

    def __len__(self) -> int:
        return len(self._results)

    @property
    def complete(self) -> bool:
        return self._complete.done()

    def store(self, index: int, result: AsyncResult[T]) -> None:
        """Record the result of the item submitted at index."""
        with self._lock:
            if self._results[index] is not None:
                raise RuntimeError(f"result {index} already stored")
            self._results[index] = result
            self._remaining -= 1
            finished = self._remaining == 0
        if finished:
            self._complete.set_result(None)

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until every item has a result."""
        try:
            self._complete.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            raise TimeoutError(f"Batch not complete within {timeout} seconds") from None

    def _emit(self) -> Iterator[AsyncResult[T]]:
        for result in self._results:
            if self._context.is_done():
                return
            yield result  # type: ignore[misc]

    def __iter__(self) -> Iterator[AsyncResult[T]]:
        self.wait()
        yield from self._emit()

    async def __aiter__(self) -> AsyncIterator[AsyncResult[T]]:
        await asyncio.wrap_future(self._complete)
        for result in self._emit():
            yield result
