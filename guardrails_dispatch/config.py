"""
Dispatcher configuration, passed explicitly to every Dispatcher.
"""

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10
DEFAULT_MAX_RETRIES = 3


@dataclass(frozen=True)
class DispatcherConfig:
    """
    Settings for one Dispatcher.

    Attributes:
        capacity: Number of concurrency slots. Values <= 0 fall back to 10.
        max_retries: Retries allowed for transient errors. Negative values
            fall back to 3.
        executor_threads: Size of the thread pool running blocking executors.
            Defaults to twice the capacity so abandoned calls do not starve
            new ones.
        use_uvloop: Run the dispatch loop on uvloop.
    """

    capacity: int = DEFAULT_CAPACITY
    max_retries: int = DEFAULT_MAX_RETRIES
    executor_threads: Optional[int] = None
    use_uvloop: bool = True

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            logger.warning(f"Invalid capacity {self.capacity}, using {DEFAULT_CAPACITY}")
            object.__setattr__(self, "capacity", DEFAULT_CAPACITY)
        if self.max_retries < 0:
            logger.warning(f"Invalid max_retries {self.max_retries}, using {DEFAULT_MAX_RETRIES}")
            object.__setattr__(self, "max_retries", DEFAULT_MAX_RETRIES)
        if self.executor_threads is None or self.executor_threads < self.capacity:
            object.__setattr__(self, "executor_threads", self.capacity * 2)
