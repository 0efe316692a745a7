"""
Cancellation context shared between the caller's thread and the dispatch loop.
"""

import asyncio
import inspect
import logging
import threading
from typing import Awaitable, Callable, List, Optional, TypeVar

from guardrails_dispatch.exceptions import CancellationError

logger = logging.getLogger(__name__)
T = TypeVar("T")


class Context:
    """
    Thread-safe cancellation token with an optional timeout.

    A context ends either when cancel() is called or when its timeout elapses.
    Callbacks registered with add_done_callback() run once, in the thread that
    ended the context.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._lock = threading.Lock()
        self._done = False
        self._deadline_exceeded = False
        self._callbacks: List[Callable[[], None]] = []
        self._timer: Optional[threading.Timer] = None
        if timeout is not None:
            self._timer = threading.Timer(timeout, self._finish, kwargs={"deadline_exceeded": True})
            self._timer.daemon = True
            self._timer.start()

    @classmethod
    def background(cls) -> "Context":
        """A context that only ends if cancelled explicitly."""
        return cls()

    def cancel(self) -> None:
        """End the context. Calling it again has no effect."""
        self._finish(deadline_exceeded=False)

    def is_done(self) -> bool:
        return self._done

    def error(self) -> Optional[CancellationError]:
        """A fresh CancellationError describing why the context ended, or None."""
        if not self._done:
            return None
        if self._deadline_exceeded:
            return CancellationError("context deadline exceeded", deadline_exceeded=True)
        return CancellationError("context cancelled")

    def add_done_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Run callback once the context ends.

        If the context already ended, callback runs immediately.

        Returns:
            A function that unregisters the callback.
        """
        with self._lock:
            if not self._done:
                self._callbacks.append(callback)
                return lambda: self._remove_callback(callback)
        callback()
        return lambda: None

    async def wait(self) -> None:
        """Suspend the calling coroutine until the context ends."""
        loop = asyncio.get_running_loop()
        waiter = loop.create_future()

        def _resolve() -> None:
            if not waiter.done():
                waiter.set_result(None)

        def _wake() -> None:
            try:
                loop.call_soon_threadsafe(_resolve)
            except RuntimeError:
                # Loop already closed, nobody is waiting any more.
                logger.debug("Context ended after its waiting loop was closed")

        remove = self.add_done_callback(_wake)
        try:
            await waiter
        finally:
            remove()

    def _remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def _finish(self, deadline_exceeded: bool) -> None:
        with self._lock:
            if self._done:
                return
            self._done = True
            self._deadline_exceeded = deadline_exceeded
            callbacks, self._callbacks = self._callbacks, []
        if self._timer is not None:
            self._timer.cancel()
        for callback in callbacks:
            callback()


async def wait_or_cancel(context: Context, awaitable: Awaitable[T]) -> T:
    """
    Race an awaitable against the end of a context.

    Args:
        context: Context whose end aborts the wait
        awaitable: The event the caller actually wants

    Returns:
        The awaitable's result, if it finished first

    Raises:
        CancellationError: If the context ended first. The awaitable is
            cancelled, which abandons (but cannot interrupt) work already
            running in another thread.
    """
    if context.is_done():
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        elif isinstance(awaitable, asyncio.Future):
            awaitable.cancel()
        raise context.error()

    task = asyncio.ensure_future(awaitable)
    cancelled = asyncio.ensure_future(context.wait())
    try:
        done, _ = await asyncio.wait({task, cancelled}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        cancelled.cancel()

    if task in done:
        return task.result()
    task.cancel()
    raise context.error()
