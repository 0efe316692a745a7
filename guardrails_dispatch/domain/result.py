"""
AsyncResult value object: the exactly-once outcome of a dispatched task.
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class AsyncResult(Generic[T]):
    """Either a value or an error, never both."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, value: T) -> "AsyncResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "AsyncResult[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or raise the error the task resolved with."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
