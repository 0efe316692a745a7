"""
BatchCollector: fans a list of payloads out through a dispatcher and
collects their results in submission order.
"""

import functools
import logging
from typing import Any, Iterable, Optional, TypeVar

from guardrails_dispatch.context import Context
from guardrails_dispatch.domain.dispatcher import DispatcherInterface
from guardrails_dispatch.domain.executor import Executor
from guardrails_dispatch.infrastructure.channel import ResultStream

logger = logging.getLogger(__name__)
T = TypeVar("T")


class BatchCollector:
    """
    Submits every payload of a batch through the same dispatcher, so the batch
    shares the dispatcher's slot pool and is drained by its close().
    """

    def __init__(self, dispatcher: DispatcherInterface) -> None:
        self._dispatcher = dispatcher

    def submit_batch(
        self,
        payloads: Iterable[Any],
        context: Optional[Context] = None,
        executor: Optional[Executor[T]] = None,
    ) -> ResultStream[T]:
        """
        Submit payloads and return their ordered result stream.

        Args:
            payloads: Inputs, one task each
            context: Context shared by every task of the batch and by the stream
            executor: Executor overriding the dispatcher's default

        Returns:
            A stream yielding one AsyncResult per payload, in input order
        """
        items = list(payloads)
        context = context or Context.background()
        stream: ResultStream[T] = ResultStream(len(items), context)
        logger.debug(f"Submitting batch of {len(items)} task(s)")

        for index, payload in enumerate(items):
            channel = self._dispatcher.submit(payload, context=context, executor=executor)
            channel.add_done_callback(functools.partial(stream.store, index))
        return stream
