"""
Domain abstractions for the executor collaborator and the tasks built around it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Generic, Protocol, TypeVar, Union

if TYPE_CHECKING:
    from guardrails_dispatch.context import Context

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class ErrorKind(Enum):
    """Classification attached to every error an executor reports."""

    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    NETWORK = "network"
    RATE_LIMITED = "rate_limited"
    SERVER = "server"

    @property
    def is_transient(self) -> bool:
        return self in (ErrorKind.NETWORK, ErrorKind.RATE_LIMITED, ErrorKind.SERVER)


class Executor(Protocol[T_co]):
    """
    Performs one classification call.

    Implementations are either blocking callables or coroutine functions.
    Failures are reported by raising an ExecutorError subclass.
    """

    def __call__(self, context: "Context", payload: Any) -> Union[T_co, Awaitable[T_co]]:
        ...


@dataclass(frozen=True)
class Task(Generic[T]):
    """One unit of submitted work paired with its cancellation context."""

    payload: Any
    executor: Executor[T]
    context: "Context"
