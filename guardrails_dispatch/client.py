"""
Asynchronous facade over a blocking guardrails client.

Every check goes through one Dispatcher, so single checks and batch checks
share the same concurrency budget and are all drained by close().
"""

import functools
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

from guardrails_dispatch.config import DispatcherConfig
from guardrails_dispatch.context import Context
from guardrails_dispatch.infrastructure.channel import ResultChannel, ResultStream
from guardrails_dispatch.infrastructure.dispatcher import Dispatcher
from guardrails_dispatch.infrastructure.retry import RetryPolicy

logger = logging.getLogger(__name__)

Message = Dict[str, Any]


class GuardrailsClient(Protocol):
    """
    Blocking client for the remote guardrails service.

    Methods raise ExecutorError subclasses (see error_for_status) on failure.
    """

    def check_prompt(self, context: Context, content: str, model: Optional[str] = None) -> Any:
        ...

    def check_conversation(
        self, context: Context, messages: Sequence[Message], model: Optional[str] = None
    ) -> Any:
        ...

    def health_check(self, context: Context) -> Dict[str, Any]:
        ...

    def get_models(self, context: Context) -> Dict[str, Any]:
        ...


class AsyncClient:
    """
    Non-blocking access to a GuardrailsClient.

    A given retry_policy wins over config.max_retries.

    Example:
        with AsyncClient(client, DispatcherConfig(capacity=5)) as async_client:
            channel = async_client.check_prompt_async("User question")
            result = channel.get(timeout=30)

            for result in async_client.batch_check_prompts(["Content 1", "Content 2"]):
                print(result.unwrap())
    """

    def __init__(
        self,
        client: GuardrailsClient,
        config: Optional[DispatcherConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self._client = client
        self._dispatcher = Dispatcher(config=config, retry_policy=retry_policy)

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    def check_prompt_async(
        self, content: str, context: Optional[Context] = None, model: Optional[str] = None
    ) -> ResultChannel[Any]:
        """Check one user prompt."""
        return self._dispatcher.submit(content, context=context, executor=self._prompt_executor(model))

    def check_conversation_async(
        self,
        messages: Sequence[Message],
        context: Optional[Context] = None,
        model: Optional[str] = None,
    ) -> ResultChannel[Any]:
        """Check a whole conversation in context."""
        return self._dispatcher.submit(
            messages, context=context, executor=self._conversation_executor(model)
        )

    def batch_check_prompts(
        self, contents: Sequence[str], context: Optional[Context] = None, model: Optional[str] = None
    ) -> ResultStream[Any]:
        """Check many prompts; results come back in input order."""
        return self._dispatcher.submit_batch(
            contents, context=context, executor=self._prompt_executor(model)
        )

    def batch_check_conversations(
        self,
        conversations: Sequence[List[Message]],
        context: Optional[Context] = None,
        model: Optional[str] = None,
    ) -> ResultStream[Any]:
        """Check many conversations; results come back in input order."""
        return self._dispatcher.submit_batch(
            conversations, context=context, executor=self._conversation_executor(model)
        )

    def health_check_async(self, context: Optional[Context] = None) -> ResultChannel[Dict[str, Any]]:
        """Query service health. Does not take a concurrency slot and is not retried."""
        return self._dispatcher.submit(
            None,
            context=context,
            executor=lambda ctx, _: self._client.health_check(ctx),
            acquire_slot=False,
            retry=False,
        )

    def get_models_async(self, context: Optional[Context] = None) -> ResultChannel[Dict[str, Any]]:
        """List available models. Does not take a concurrency slot and is not retried."""
        return self._dispatcher.submit(
            None,
            context=context,
            executor=lambda ctx, _: self._client.get_models(ctx),
            acquire_slot=False,
            retry=False,
        )

    def concurrency(self) -> int:
        return self._dispatcher.capacity()

    def active_workers(self) -> int:
        return self._dispatcher.active_slots()

    def close(self) -> None:
        """Wait for all ongoing checks to complete, then release resources."""
        self._dispatcher.close()

    def __enter__(self) -> "AsyncClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _prompt_executor(self, model: Optional[str]):
        return functools.partial(_call_with_model, self._client.check_prompt, model)

    def _conversation_executor(self, model: Optional[str]):
        return functools.partial(_call_with_model, self._client.check_conversation, model)


def _call_with_model(method, model: Optional[str], context: Context, payload: Any) -> Any:
    if model is None:
        return method(context, payload)
    return method(context, payload, model=model)
