"""
Domain interface for the Dispatcher component.
"""

from typing import TYPE_CHECKING, Any, Iterable, Optional, Protocol, TypeVar, runtime_checkable

from guardrails_dispatch.domain.executor import Executor

if TYPE_CHECKING:
    from guardrails_dispatch.context import Context
    from guardrails_dispatch.infrastructure.channel import ResultChannel, ResultStream

T = TypeVar("T")


@runtime_checkable
class DispatcherInterface(Protocol):
    """
    Interface for the Dispatcher component.
    Defines the contract that all Dispatcher implementations must follow.
    """

    def submit(
        self,
        payload: Any,
        context: Optional["Context"] = None,
        executor: Optional[Executor[T]] = None,
    ) -> "ResultChannel[T]":
        """
        Submit one payload for execution without blocking the caller.

        Args:
            payload: Input handed to the executor
            context: Cancellation context for this task
            executor: Executor overriding the dispatcher's default

        Returns:
            A channel that yields exactly one AsyncResult
        """
        ...

    def submit_batch(
        self,
        payloads: Iterable[Any],
        context: Optional["Context"] = None,
        executor: Optional[Executor[T]] = None,
    ) -> "ResultStream[T]":
        """
        Submit many payloads and stream their results in submission order.
        """
        ...

    def capacity(self) -> int:
        """Configured number of concurrency slots."""
        ...

    def in_flight(self) -> int:
        """Number of admitted tasks that have not delivered their result yet."""
        ...

    def close(self) -> None:
        """Stop admitting tasks and block until outstanding work has drained."""
        ...
