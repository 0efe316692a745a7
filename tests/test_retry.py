"""
Tests for RetryPolicy.
"""

import asyncio

import pytest

from guardrails_dispatch import (
    AuthenticationError,
    CancellationError,
    Context,
    ErrorKind,
    ExhaustedRetriesError,
    NetworkError,
    RateLimitError,
    RetryPolicy,
    ServerError,
    TerminalError,
    TransientError,
    ValidationError,
    exponential_backoff,
)


class ScriptedCall:
    """Zero-argument coroutine factory raising the scripted errors in turn."""

    def __init__(self, *outcomes):
        self._outcomes = list(outcomes)
        self.attempts = 0

    async def __call__(self):
        self.attempts += 1
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def test_backoff_is_two_to_the_attempt_plus_one():
    assert [exponential_backoff(k) for k in range(4)] == [2.0, 3.0, 5.0, 9.0]


@pytest.mark.asyncio
async def test_first_success_is_returned(recording_sleep):
    call = ScriptedCall("ok")

    assert await RetryPolicy(sleep=recording_sleep).run(Context(), call) == "ok"
    assert call.attempts == 1
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_transient_errors_are_retried_until_success(recording_sleep):
    call = ScriptedCall(NetworkError("reset"), ServerError("502"), "ok")

    assert await RetryPolicy(sleep=recording_sleep).run(Context(), call) == "ok"
    assert call.attempts == 3
    assert recording_sleep.delays == [2.0, 3.0]


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [AuthenticationError("denied"), ValidationError("bad")])
async def test_terminal_errors_are_raised_at_once(recording_sleep, error):
    call = ScriptedCall(error)

    with pytest.raises(type(error)) as raised:
        await RetryPolicy(sleep=recording_sleep).run(Context(), call)

    assert raised.value is error
    assert call.attempts == 1
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_untagged_errors_are_not_retried(recording_sleep):
    call = ScriptedCall(ConnectionError("boom"), "never reached")

    with pytest.raises(ConnectionError):
        await RetryPolicy(sleep=recording_sleep).run(Context(), call)
    assert call.attempts == 1


@pytest.mark.asyncio
async def test_exhausted_retries_wrap_last_error(recording_sleep):
    errors = [ServerError(f"attempt {i}") for i in range(4)]
    call = ScriptedCall(*errors)

    with pytest.raises(ExhaustedRetriesError) as raised:
        await RetryPolicy(max_retries=3, sleep=recording_sleep).run(Context(), call)

    assert call.attempts == 4
    assert raised.value.attempts == 4
    assert raised.value.last_error is errors[-1]
    assert raised.value.__cause__ is errors[-1]
    assert raised.value.kind is ErrorKind.SERVER
    assert recording_sleep.delays == [2.0, 3.0, 5.0]


@pytest.mark.asyncio
async def test_zero_retries_means_a_single_attempt(recording_sleep):
    call = ScriptedCall(NetworkError("down"))

    with pytest.raises(ExhaustedRetriesError):
        await RetryPolicy(max_retries=0, sleep=recording_sleep).run(Context(), call)
    assert call.attempts == 1
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_cancellation_during_backoff_stops_retrying():
    context = Context()
    call = ScriptedCall(NetworkError("down"), "never reached")
    policy = RetryPolicy(backoff=lambda attempt: 60.0)

    asyncio.get_running_loop().call_later(0.05, context.cancel)

    with pytest.raises(CancellationError) as raised:
        await asyncio.wait_for(policy.run(context, call), timeout=2.0)

    assert not raised.value.deadline_exceeded
    assert call.attempts == 1


@pytest.mark.asyncio
async def test_deadline_during_backoff_reports_deadline_exceeded():
    call = ScriptedCall(NetworkError("down"), "never reached")
    policy = RetryPolicy(backoff=lambda attempt: 60.0)

    with pytest.raises(CancellationError) as raised:
        await asyncio.wait_for(policy.run(Context(timeout=0.05), call), timeout=2.0)

    assert raised.value.deadline_exceeded


@pytest.mark.asyncio
async def test_bare_terminal_error_is_not_retried(recording_sleep):
    call = ScriptedCall(TerminalError("denied"), "never reached")

    with pytest.raises(TerminalError):
        await RetryPolicy(max_retries=3, sleep=recording_sleep).run(Context(), call)

    assert call.attempts == 1
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_bare_transient_error_is_retried(recording_sleep):
    call = ScriptedCall(TransientError("flaky"), "ok")

    assert await RetryPolicy(sleep=recording_sleep).run(Context(), call) == "ok"
    assert call.attempts == 2


@pytest.mark.asyncio
async def test_exhausted_error_is_not_an_instance_of_the_last_error(recording_sleep):
    call = ScriptedCall(RateLimitError("slow down"))

    with pytest.raises(ExhaustedRetriesError) as raised:
        await RetryPolicy(max_retries=0, sleep=recording_sleep).run(Context(), call)

    assert not isinstance(raised.value, RateLimitError)
    assert isinstance(raised.value.last_error, RateLimitError)
    assert raised.value.kind is ErrorKind.RATE_LIMITED
