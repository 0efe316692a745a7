"""
Exception module for guardrails_dispatch.

This module defines the errors a dispatched task may resolve with. Executor
errors carry an ErrorKind tag so the retry policy can tell terminal failures
from transient ones without knowing about any transport.
"""

from typing import Optional

from guardrails_dispatch.domain.executor import ErrorKind


class DispatchError(Exception):
    """Base exception for errors in the dispatcher."""


class CancellationError(DispatchError):
    """Raised when a task's context ends before the task completes."""

    def __init__(self, message: str = "context cancelled", deadline_exceeded: bool = False) -> None:
        super().__init__(message)
        self.deadline_exceeded = deadline_exceeded


class ClosedError(DispatchError):
    """Raised when a task is submitted after the dispatcher was closed."""


class ExecutorError(DispatchError):
    """Error reported by an executor, tagged with its ErrorKind."""

    kind: ErrorKind = ErrorKind.SERVER

    def __init__(
        self, message: str, cause: Optional[BaseException] = None, kind: Optional[ErrorKind] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        if kind is not None:
            self.kind = kind

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message

    @property
    def is_transient(self) -> bool:
        return self.kind.is_transient


class TerminalError(ExecutorError):
    """Executor error that must not be retried, whatever its kind."""

    @property
    def is_transient(self) -> bool:
        return False


class AuthenticationError(TerminalError):
    kind = ErrorKind.AUTHENTICATION


class ValidationError(TerminalError):
    kind = ErrorKind.VALIDATION


class TransientError(ExecutorError):
    """Executor error worth retrying, whatever its kind."""

    @property
    def is_transient(self) -> bool:
        return True


class NetworkError(TransientError):
    kind = ErrorKind.NETWORK


class RateLimitError(TransientError):
    kind = ErrorKind.RATE_LIMITED


class ServerError(TransientError):
    kind = ErrorKind.SERVER


class ExhaustedRetriesError(DispatchError):
    """
    Raised once the retry budget is spent; wraps the last transient error.

    The wrapped error is not re-raised, so isinstance(error, RateLimitError)
    is False here. Check ``kind`` or ``last_error`` instead.
    """

    def __init__(self, last_error: ExecutorError, attempts: int) -> None:
        super().__init__(f"giving up after {attempts} attempts: {last_error}")
        self.last_error = last_error
        self.attempts = attempts

    @property
    def kind(self) -> ErrorKind:
        return self.last_error.kind


def error_for_status(status: int, detail: str = "") -> ExecutorError:
    """
    Build the tagged error for an HTTP-like status code.

    Transport adapters call this so the retry policy never has to look at
    status codes itself.

    Args:
        status: Response status code.
        detail: Error detail reported by the remote service.

    Returns:
        The ExecutorError subclass matching the status.
    """
    if status == 401:
        return AuthenticationError("invalid API key")
    if status == 422:
        return ValidationError(f"validation error: {detail or 'validation error'}")
    if status == 429:
        return RateLimitError("rate limit exceeded")
    return ServerError(f"API request failed with status {status}: {detail}")
