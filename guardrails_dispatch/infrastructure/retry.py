"""
RetryPolicy: bounded retry with exponential backoff around one executor call.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from guardrails_dispatch.config import DEFAULT_MAX_RETRIES
from guardrails_dispatch.context import Context, wait_or_cancel
from guardrails_dispatch.exceptions import ExecutorError, ExhaustedRetriesError

logger = logging.getLogger(__name__)
T = TypeVar("T")


def exponential_backoff(attempt: int) -> float:
    """Delay in seconds before retry ``attempt`` (0-indexed): 2**attempt + 1, no jitter."""
    return float(2**attempt) + 1.0


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retries transient executor errors.

    Terminal errors and errors without an ErrorKind tag are raised at once.
    Transient errors are retried up to ``max_retries`` additional times,
    waiting ``backoff(attempt)`` seconds before each retry. The policy holds
    no per-call state, so one instance serves every task.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    backoff: Callable[[int], float] = exponential_backoff
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def run(self, context: Context, call: Callable[[], Awaitable[T]]) -> T:
        """
        Run call until it succeeds, fails terminally or the budget is spent.

        Args:
            context: Context that aborts backoff waits
            call: Zero-argument coroutine factory performing one attempt

        Returns:
            The first successful result

        Raises:
            ExhaustedRetriesError: Wrapping the last transient error
            CancellationError: If the context ends during a backoff wait
            Exception: Any terminal or untagged error raised by call
        """
        attempt = 0
        while True:
            try:
                return await call()
            except ExecutorError as exc:
                if not exc.is_transient:
                    raise
                if attempt >= self.max_retries:
                    raise ExhaustedRetriesError(exc, attempts=attempt + 1) from exc
                delay = self.backoff(attempt)
                logger.warning(
                    f"Retry {attempt + 1}/{self.max_retries} after {delay:.1f}s: "
                    f"{exc.kind.value} error: {exc}"
                )
                await wait_or_cancel(context, self.sleep(delay))
                attempt += 1
