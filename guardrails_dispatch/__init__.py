"""
Bounded-concurrency async dispatcher for remote guardrail classification calls.
"""

from guardrails_dispatch.client import AsyncClient
from guardrails_dispatch.config import DispatcherConfig
from guardrails_dispatch.context import Context
from guardrails_dispatch.domain.executor import ErrorKind, Executor, Task
from guardrails_dispatch.domain.result import AsyncResult
from guardrails_dispatch.exceptions import (
    AuthenticationError,
    CancellationError,
    ClosedError,
    DispatchError,
    ExecutorError,
    ExhaustedRetriesError,
    NetworkError,
    RateLimitError,
    ServerError,
    TerminalError,
    TransientError,
    ValidationError,
    error_for_status,
)
from guardrails_dispatch.infrastructure.channel import ResultChannel, ResultStream
from guardrails_dispatch.infrastructure.dispatcher import Dispatcher
from guardrails_dispatch.infrastructure.retry import RetryPolicy, exponential_backoff

__all__ = [
    "AsyncClient",
    "AsyncResult",
    "AuthenticationError",
    "CancellationError",
    "ClosedError",
    "Context",
    "DispatchError",
    "Dispatcher",
    "DispatcherConfig",
    "ErrorKind",
    "Executor",
    "ExecutorError",
    "ExhaustedRetriesError",
    "NetworkError",
    "RateLimitError",
    "ResultChannel",
    "ResultStream",
    "RetryPolicy",
    "ServerError",
    "Task",
    "TerminalError",
    "TransientError",
    "ValidationError",
    "error_for_status",
    "exponential_backoff",
]
