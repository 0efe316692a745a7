"""
Tests for the EventLoop that hosts dispatch coroutines.

These tests verify:
1. Basic lifecycle (start, running, shutdown)
2. Coroutine execution on the loop thread
3. Error handling and edge cases
4. Observable behaviour, not implementation details
"""

import asyncio
import threading

import pytest
import uvloop

from guardrails_dispatch.infrastructure import EventLoop
from guardrails_dispatch.infrastructure.event_loop import LOOP_THREAD_NAME


@pytest.fixture
def event_loop_fixture():
    """
    Fixture that provides a clean EventLoop instance.
    """
    loop = EventLoop()
    yield loop
    # Ensure cleanup
    if loop.is_running():
        loop.shutdown()


class TestEventLoopLifecycle:
    """Tests for the EventLoop lifecycle."""

    def test_should_start_in_clean_state(self, event_loop_fixture):
        assert not event_loop_fixture.is_running()
        assert event_loop_fixture.get_loop() is None

    def test_should_become_running_after_start(self, event_loop_fixture):
        # When: the EventLoop is started
        event_loop_fixture.start()

        # Then: it is running on its own named daemon thread
        assert event_loop_fixture.is_running()
        assert event_loop_fixture.thread.name == LOOP_THREAD_NAME
        assert event_loop_fixture.thread.daemon

    def test_should_use_uvloop_by_default(self, event_loop_fixture):
        event_loop_fixture.start()

        assert isinstance(event_loop_fixture.get_loop(), uvloop.Loop)

    def test_can_fall_back_to_default_asyncio_loop(self):
        loop = EventLoop(use_uvloop=False)
        loop.start()
        try:
            assert isinstance(loop.get_loop(), asyncio.AbstractEventLoop)
            assert not isinstance(loop.get_loop(), uvloop.Loop)
        finally:
            loop.shutdown()

    def test_start_should_be_idempotent(self, event_loop_fixture):
        # Given: EventLoop already started
        event_loop_fixture.start()
        original_loop = event_loop_fixture.get_loop()

        # When: start() is called again
        event_loop_fixture.start()

        # Then: nothing changes
        assert event_loop_fixture.is_running()
        assert event_loop_fixture.get_loop() is original_loop

    def test_should_transition_to_stopped_after_shutdown(self, event_loop_fixture):
        event_loop_fixture.start()
        thread = event_loop_fixture.thread

        event_loop_fixture.shutdown()

        assert not event_loop_fixture.is_running()
        assert not thread.is_alive()

    def test_shutdown_should_be_safe_to_call_multiple_times(self, event_loop_fixture):
        event_loop_fixture.start()
        event_loop_fixture.shutdown()

        # Multiple shutdown calls must not fail
        event_loop_fixture.shutdown()
        event_loop_fixture.shutdown()

        assert not event_loop_fixture.is_running()

    def test_should_handle_shutdown_when_not_running(self, event_loop_fixture):
        event_loop_fixture.shutdown()
        assert not event_loop_fixture.is_running()

    def test_should_support_restart_cycles(self, event_loop_fixture):
        async def ping():
            return "pong"

        for _ in range(3):
            event_loop_fixture.start()
            assert event_loop_fixture.run_coroutine(ping()).result(timeout=1.0) == "pong"
            event_loop_fixture.shutdown()
            assert not event_loop_fixture.is_running()


class TestEventLoopExecution:
    """Tests for running coroutines on the loop."""

    def test_should_execute_coroutines_successfully(self, event_loop_fixture):
        event_loop_fixture.start()

        async def simple_coroutine():
            await asyncio.sleep(0.01)
            return "success"

        future = event_loop_fixture.run_coroutine(simple_coroutine())

        assert future.result(timeout=1.0) == "success"

    def test_should_run_coroutines_on_the_loop_thread(self, event_loop_fixture):
        event_loop_fixture.start()

        async def where_am_i():
            return threading.current_thread(), event_loop_fixture.in_loop_thread()

        thread, in_loop = event_loop_fixture.run_coroutine(where_am_i()).result(timeout=1.0)

        assert thread is event_loop_fixture.thread
        assert in_loop
        assert not event_loop_fixture.in_loop_thread()

    def test_should_handle_coroutine_exceptions(self, event_loop_fixture):
        event_loop_fixture.start()

        async def failing_coroutine():
            raise ValueError("Test error")

        future = event_loop_fixture.run_coroutine(failing_coroutine())

        with pytest.raises(ValueError, match="Test error"):
            future.result(timeout=1.0)

    def test_should_execute_multiple_coroutines_concurrently(self, event_loop_fixture):
        event_loop_fixture.start()

        async def delayed_result(delay: float, value: str) -> str:
            await asyncio.sleep(delay)
            return value

        future1 = event_loop_fixture.run_coroutine(delayed_result(0.1, "first"))
        future2 = event_loop_fixture.run_coroutine(delayed_result(0.05, "second"))

        # The second one finishes first
        assert future2.result(timeout=1.0) == "second"
        assert not future1.done()
        assert future1.result(timeout=1.0) == "first"

    def test_run_coroutine_should_fail_when_not_running(self, event_loop_fixture):
        async def never_runs():
            return "unreachable"

        with pytest.raises(RuntimeError, match="not running"):
            event_loop_fixture.run_coroutine(never_runs())

    def test_shutdown_should_cancel_leftover_tasks(self, event_loop_fixture):
        event_loop_fixture.start()
        cancelled = threading.Event()

        async def forever():
            try:
                await asyncio.sleep(60)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        future = event_loop_fixture.run_coroutine(forever())
        started = event_loop_fixture.run_coroutine(asyncio.sleep(0.05))
        started.result(timeout=1.0)

        event_loop_fixture.shutdown()

        assert cancelled.is_set()
        assert future.cancelled()
