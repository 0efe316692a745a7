"""
Shared fixtures and executor stubs for the dispatcher tests.
"""

import threading
import time
from typing import Callable, List

import pytest

from guardrails_dispatch import Dispatcher, DispatcherConfig, RetryPolicy


class GatedExecutor:
    """
    Blocking executor stub: every call waits until release() is called.

    Records how many calls were made and the highest number of calls running
    at the same time.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._gate = threading.Event()
        self._started = threading.Semaphore(0)
        self.calls = 0
        self.running = 0
        self.max_running = 0

    def __call__(self, context, payload):
        with self._lock:
            self.calls += 1
            self.running += 1
            self.max_running = max(self.max_running, self.running)
        self._started.release()
        try:
            self._gate.wait(timeout=5.0)
            return payload
        finally:
            with self._lock:
                self.running -= 1

    def release(self) -> None:
        self._gate.set()

    def wait_started(self, count: int, timeout: float = 2.0) -> bool:
        """Wait until count more calls have started."""
        deadline = time.monotonic() + timeout
        for _ in range(count):
            if not self._started.acquire(timeout=max(0.0, deadline - time.monotonic())):
                return False
        return True


class RecordingSleep:
    """Backoff sleep stub that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def gate(make_dispatcher):
    # Depends on make_dispatcher so the gate is released before dispatchers close.
    gated = GatedExecutor()
    yield gated
    gated.release()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def make_dispatcher(recording_sleep):
    """
    Factory fixture that builds dispatchers and closes them after the test.
    Backoff waits are recorded, not slept.
    """
    created = []

    def _make(executor=None, capacity: int = 10, max_retries: int = 3) -> Dispatcher:
        dispatcher = Dispatcher(
            executor,
            DispatcherConfig(capacity=capacity, max_retries=max_retries),
            RetryPolicy(max_retries=max_retries, sleep=recording_sleep),
        )
        created.append(dispatcher)
        return dispatcher

    yield _make
    for dispatcher in created:
        dispatcher.close()
