"""
Dispatcher component that admits tasks, bounds their concurrency and
delivers exactly one result per task.
"""

import asyncio
import concurrent.futures
import inspect
import logging
import threading
from typing import Any, Iterable, Optional, Set, TypeVar

from guardrails_dispatch.config import DispatcherConfig
from guardrails_dispatch.context import Context, wait_or_cancel
from guardrails_dispatch.domain.dispatcher import DispatcherInterface
from guardrails_dispatch.domain.executor import Executor, Task
from guardrails_dispatch.domain.result import AsyncResult
from guardrails_dispatch.exceptions import CancellationError, ClosedError
from guardrails_dispatch.infrastructure.batch import BatchCollector
from guardrails_dispatch.infrastructure.channel import ResultChannel, ResultStream
from guardrails_dispatch.infrastructure.lifecycle import LifecycleManager
from guardrails_dispatch.infrastructure.retry import RetryPolicy
from guardrails_dispatch.infrastructure.slots import SlotPool
from guardrails_dispatch.infrastructure.worker import Worker

logger = logging.getLogger(__name__)
T = TypeVar("T")


class Dispatcher(DispatcherInterface):
    """
    Runs executor calls on a dedicated event loop, at most ``capacity`` at a time.

    submit() never blocks: it returns a ResultChannel at once and a worker
    coroutine takes care of waiting for a slot, retrying and delivering.
    close() stops admission and blocks until every admitted task, batch
    items included, has delivered its result.
    """

    def __init__(
        self,
        executor: Optional[Executor[Any]] = None,
        config: Optional[DispatcherConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        """
        Initialize the Dispatcher and start its worker.

        A given retry_policy wins over config.max_retries.
        """
        self._config = config or DispatcherConfig()
        self._executor = executor
        self._retry = retry_policy or RetryPolicy(max_retries=self._config.max_retries)
        if self._retry.max_retries != self._config.max_retries:
            logger.debug(
                f"Retry policy allows {self._retry.max_retries} retries, "
                f"ignoring config.max_retries={self._config.max_retries}"
            )
        self._slots = SlotPool(self._config.capacity)
        self._lifecycle = LifecycleManager()
        self._batches = BatchCollector(self)
        self._pending: Set[concurrent.futures.Future] = set()
        self._pending_lock = threading.Lock()
        self._worker = Worker(
            max_threads=self._config.executor_threads, use_uvloop=self._config.use_uvloop
        )
        self._worker.start()
        logger.debug(f"Dispatcher initialized with {self._config.capacity} slots")

    @property
    def config(self) -> DispatcherConfig:
        return self._config

    @property
    def closed(self) -> bool:
        return self._lifecycle.closed

    def capacity(self) -> int:
        return self._slots.capacity

    def in_flight(self) -> int:
        return self._lifecycle.outstanding

    def active_slots(self) -> int:
        """Number of slots currently held by running tasks."""
        return self._slots.in_use

    def submit(
        self,
        payload: Any,
        context: Optional[Context] = None,
        executor: Optional[Executor[T]] = None,
        *,
        acquire_slot: bool = True,
        retry: bool = True,
    ) -> ResultChannel[T]:
        """
        Submit one payload for execution.

        Args:
            payload: Input handed to the executor
            context: Cancellation context, defaults to a background context
            executor: Executor overriding the dispatcher's default
            acquire_slot: Wait for a concurrency slot before calling the executor
            retry: Apply the retry policy to transient errors

        Returns:
            A channel that yields exactly one AsyncResult
        """
        executor = executor or self._executor
        if executor is None:
            raise ValueError("No executor given and the dispatcher has no default executor")
        task: Task[T] = Task(payload=payload, executor=executor, context=context or Context.background())

        if not self._lifecycle.admit():
            logger.debug("Rejecting task submitted after close()")
            return ResultChannel.resolved(AsyncResult.failure(ClosedError("dispatcher is closed")))

        channel: ResultChannel[T] = ResultChannel()
        try:
            future = self._worker.run_coroutine(self._process(task, channel, acquire_slot, retry))
        except RuntimeError as e:
            self._lifecycle.task_done()
            return ResultChannel.resolved(AsyncResult.failure(ClosedError(f"dispatcher unavailable: {e}")))
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return channel

    def submit_batch(
        self,
        payloads: Iterable[Any],
        context: Optional[Context] = None,
        executor: Optional[Executor[T]] = None,
    ) -> ResultStream[T]:
        """Submit many payloads and stream their results in submission order."""
        return self._batches.submit_batch(payloads, context=context, executor=executor)

    def close(self) -> None:
        """
        Stop admitting tasks, wait until outstanding work has drained, then
        stop the worker. Safe to call more than once and from several threads.

        Must not be called from inside an executor running on this dispatcher.
        """
        if self._lifecycle.close(self._worker.shutdown):
            logger.debug("Dispatcher closed")

    def __enter__(self) -> "Dispatcher":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    async def _process(
        self, task: Task[T], channel: ResultChannel[T], acquire_slot: bool, retry: bool
    ) -> None:
        try:
            value = await self._execute(task, acquire_slot, retry)
        except asyncio.CancelledError:
            channel.deliver(AsyncResult.failure(CancellationError("dispatch worker cancelled")))
            raise
        except Exception as e:
            channel.deliver(AsyncResult.failure(e))
        else:
            channel.deliver(AsyncResult.success(value))
        finally:
            self._lifecycle.task_done()

    async def _execute(self, task: Task[T], acquire_slot: bool, retry: bool) -> T:
        if acquire_slot:
            await self._slots.acquire(task.context)
        try:
            if retry:
                return await self._retry.run(task.context, lambda: self._invoke(task))
            return await self._invoke(task)
        finally:
            if acquire_slot:
                self._slots.release()

    async def _invoke(self, task: Task[T]) -> T:
        if task.context.is_done():
            raise task.context.error()
        if _is_async(task.executor):
            call = task.executor(task.context, task.payload)
        else:
            call = self._worker.run_blocking(task.executor, task.context, task.payload)
        return await wait_or_cancel(task.context, call)

    def _forget(self, future: concurrent.futures.Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error(f"Dispatch worker failed unexpectedly: {future.exception()}")


def _is_async(executor: Executor[Any]) -> bool:
    return inspect.iscoroutinefunction(executor) or inspect.iscoroutinefunction(
        getattr(executor, "__call__", None)
    )
