"""
Lifecycle management for the dispatcher: admission, outstanding-work tracking
and the drain-then-release shutdown.
"""

import logging
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterator

logger = logging.getLogger(__name__)


class LifecycleState(Enum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class ReadWriteLock:
    """Many concurrent readers or a single writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            self._cond.wait_for(lambda: not self._writing)
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._cond.wait_for(lambda: not self._writing and self._readers == 0)
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class LifecycleManager:
    """
    Tracks outstanding tasks and implements Open -> Closing -> Closed.

    admit() and close() serialize through a reader/writer lock, so once close()
    has flipped the state no further task can be admitted.
    """

    def __init__(self) -> None:
        self._rw_lock = ReadWriteLock()
        self._state = LifecycleState.OPEN
        self._outstanding = 0
        self._drained = threading.Condition()

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def closed(self) -> bool:
        with self._rw_lock.read():
            return self._state is not LifecycleState.OPEN

    @property
    def outstanding(self) -> int:
        return self._outstanding

    def admit(self) -> bool:
        """Register one more outstanding task, unless shutdown has begun."""
        with self._rw_lock.read():
            if self._state is not LifecycleState.OPEN:
                return False
            with self._drained:
                self._outstanding += 1
            return True

    def task_done(self) -> None:
        """Mark one admitted task as delivered."""
        with self._drained:
            if self._outstanding <= 0:
                raise RuntimeError("task_done() called more times than admit()")
            self._outstanding -= 1
            if self._outstanding == 0:
                self._drained.notify_all()

    def close(self, release: Callable[[], None]) -> bool:
        """
        Stop admitting, wait for outstanding tasks, then call release.

        Only the first caller waits and releases; later callers return at once.

        Returns:
            True for the call that performed the shutdown.
        """
        with self._rw_lock.write():
            if self._state is not LifecycleState.OPEN:
                logger.debug(f"close() called while {self._state.value}; nothing to do")
                return False
            self._state = LifecycleState.CLOSING

        logger.debug(f"Draining {self._outstanding} outstanding task(s)")
        with self._drained:
            self._drained.wait_for(lambda: self._outstanding == 0)

        try:
            release()
        finally:
            self._state = LifecycleState.CLOSED
        return True
