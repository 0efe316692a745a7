"""
EventLoop component that runs dispatch coroutines on a dedicated thread.
Simple and direct approach: the loop is always created and owned here.
"""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Coroutine, Optional, TypeVar

import uvloop

logger = logging.getLogger(__name__)
T = TypeVar("T")

LOOP_THREAD_NAME = "DispatchLoopThread"


def new_event_loop(use_uvloop: bool = True) -> asyncio.AbstractEventLoop:
    """Create a fresh loop, backed by uvloop unless told otherwise."""
    if use_uvloop:
        return uvloop.new_event_loop()
    return asyncio.new_event_loop()


class EventLoop:
    """
    Owns one event loop running forever in a daemon thread.
    Coroutines are handed over from any thread with run_coroutine().
    """

    def __init__(self, use_uvloop: bool = True) -> None:
        """Initialize the EventLoop."""
        self._use_uvloop = use_uvloop
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._is_running = False
        logger.debug("EventLoop initialized")

    @property
    def thread(self) -> Optional[threading.Thread]:
        return self._thread

    def start(self) -> None:
        """Start the event loop if not already running."""
        if self._is_running:
            logger.warning("EventLoop is already running")
            return

        self._loop = new_event_loop(self._use_uvloop)
        self._thread = threading.Thread(target=self._run, name=LOOP_THREAD_NAME, daemon=True)
        self._thread.start()
        self._is_running = True
        logger.info(f"Started {'uvloop' if self._use_uvloop else 'asyncio'} event loop in new thread")

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def run_coroutine(self, coro: Coroutine[Any, Any, T]) -> concurrent.futures.Future:
        """Schedule a coroutine on the loop from any thread."""
        if not self._is_running or self._loop is None:
            coro.close()
            raise RuntimeError("Event loop is not running")
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def get_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        """Get the current event loop."""
        return self._loop

    def in_loop_thread(self) -> bool:
        return self._thread is not None and threading.current_thread() is self._thread

    def shutdown(self) -> None:
        """Stop the loop, join its thread and close it."""
        if not self._is_running:
            return

        logger.info("Shutting down dispatch event loop")
        loop, thread = self._loop, self._thread
        try:
            if thread is not threading.current_thread():
                try:
                    asyncio.run_coroutine_threadsafe(_cancel_leftover_tasks(), loop).result(timeout=2.0)
                except concurrent.futures.TimeoutError:
                    logger.warning("Leftover tasks did not finish cancelling in time")
            loop.call_soon_threadsafe(loop.stop)
            if thread is not None and thread.is_alive() and thread is not threading.current_thread():
                thread.join(timeout=2.0)
                if thread.is_alive():
                    logger.warning("Event loop thread did not terminate gracefully")
            if not loop.is_running() and not loop.is_closed():
                loop.close()
        finally:
            self._loop = None
            self._thread = None
            self._is_running = False

    def is_running(self) -> bool:
        """Check if the event loop is running."""
        return self._is_running and self._loop is not None and not self._loop.is_closed()


async def _cancel_leftover_tasks() -> None:
    current = asyncio.current_task()
    tasks = [task for task in asyncio.all_tasks() if task is not current]
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
