"""
Worker component that provides the runtime for dispatch coroutines:
an event loop on its own thread plus a thread pool for blocking executors.
"""

import asyncio
import concurrent.futures
import functools
import logging
from typing import Any, Callable, Coroutine, Optional, TypeVar

from guardrails_dispatch.infrastructure.event_loop import EventLoop

logger = logging.getLogger(__name__)
T = TypeVar("T")


class Worker:
    """
    Worker that manages the execution of dispatch coroutines in a separate thread.
    """

    def __init__(self, max_threads: int, use_uvloop: bool = True) -> None:
        """Initialize the Worker component."""
        self._event_loop = EventLoop(use_uvloop=use_uvloop)
        self._max_threads = max_threads
        self._threads: Optional[concurrent.futures.ThreadPoolExecutor] = None
        logger.debug("Worker initialized")

    @property
    def event_loop(self) -> EventLoop:
        return self._event_loop

    def start(self) -> None:
        """Start the event loop thread and the executor thread pool."""
        if self.is_running():
            return
        self._threads = concurrent.futures.ThreadPoolExecutor(
            max_workers=self._max_threads, thread_name_prefix="dispatch-executor"
        )
        self._event_loop.start()
        logger.debug("Worker started")

    def run_coroutine(self, coro: Coroutine[Any, Any, T]) -> concurrent.futures.Future:
        """
        Run a coroutine in the worker's event loop.

        Args:
            coro: The coroutine to run

        Returns:
            A concurrent future completed with the coroutine's outcome
        """
        return self._event_loop.run_coroutine(coro)

    def run_blocking(self, fn: Callable[..., T], *args: Any) -> "asyncio.Future[T]":
        """
        Run a blocking callable on the thread pool.

        Must be called from the worker's event loop.
        """
        if self._threads is None:
            raise RuntimeError("Worker has not been started")
        loop = asyncio.get_running_loop()
        return loop.run_in_executor(self._threads, functools.partial(fn, *args))

    def shutdown(self) -> None:
        """Shutdown the worker."""
        self._event_loop.shutdown()
        if self._threads is not None:
            # Abandoned executor calls may still be running; do not wait for them.
            self._threads.shutdown(wait=False, cancel_futures=True)
            self._threads = None
        logger.debug("Worker shutdown completed")

    def is_running(self) -> bool:
        """Check if the worker is running."""
        return self._event_loop.is_running()
