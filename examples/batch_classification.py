"""
Example demonstrating single and batch classification through the dispatcher.
"""

import logging
import random
import time

from guardrails_dispatch import Context, Dispatcher, DispatcherConfig, RateLimitError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def classify(context: Context, content: str) -> str:
    """
    Example executor that simulates a remote guardrail check.

    Args:
        context: Cancellation context of the task.
        content: Text to classify.

    Returns:
        str: The risk level assigned to the content.
    """
    time.sleep(random.uniform(0.1, 0.5))
    if random.random() < 0.1:
        raise RateLimitError("rate limit exceeded")
    return "high_risk" if "attack" in content else "no_risk"


def main():
    with Dispatcher(classify, DispatcherConfig(capacity=3, max_retries=2)) as dispatcher:
        # Example 1: Single check with result
        logger.info("Submitting single check")
        result = dispatcher.submit("I want to learn programming").get()
        logger.info(f"Got result: {result}")

        # Example 2: Single check with timeout
        logger.info("Submitting check with a 50ms deadline")
        result = dispatcher.submit("Slow content", context=Context(timeout=0.05)).get()
        logger.info(f"Got error as expected: {result.error!r}")

        # Example 3: Ordered batch
        contents = [f"Content {i}" for i in range(8)] + ["prompt attack"]
        logger.info(f"Submitting batch of {len(contents)} checks")
        for content, result in zip(contents, dispatcher.submit_batch(contents)):
            if result.ok:
                logger.info(f"{content}: {result.value}")
            else:
                logger.warning(f"{content}: failed with {result.error}")


if __name__ == "__main__":
    main()
