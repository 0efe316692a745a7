"""
Concrete runtime: event loop thread, worker, slot pool, retry, batching and lifecycle.
"""

from guardrails_dispatch.infrastructure.dispatcher import Dispatcher
from guardrails_dispatch.infrastructure.event_loop import EventLoop
from guardrails_dispatch.infrastructure.worker import Worker

__all__ = ["Dispatcher", "EventLoop", "Worker"]
