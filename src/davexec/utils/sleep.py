r"""Wait time calculation between two attempts.

This module combines a backoff strategy, the Retry-After header of the
last response, an optional cap and optional jitter into the number of
seconds the retry loop waits before the next attempt.
"""

from __future__ import annotations

__all__ = ["calculate_sleep_time"]

import logging
import random
from typing import TYPE_CHECKING, Any

from davexec.utils.retry_after import parse_retry_after

if TYPE_CHECKING:
    from davexec.backoff.base import BaseBackoffStrategy
    from davexec.response import Response

logger: logging.Logger = logging.getLogger(__name__)


def calculate_sleep_time(
    attempt: int,
    backoff_strategy: BaseBackoffStrategy,
    response: Response[Any] | None = None,
    jitter_factor: float = 0.0,
    max_wait_time: float | None = None,
) -> float:
    """Calculate the wait time before the next attempt.

    The wait time is calculated as follows:
    1. Use the Retry-After header of the response if present and valid,
       otherwise ``backoff_strategy.calculate(attempt)``.
    2. Cap it at ``max_wait_time`` if set.
    3. Add ``random.uniform(0, jitter_factor) * wait`` if
       ``jitter_factor > 0``.

    Args:
        attempt: The index of the attempt that just finished (0-indexed).
        backoff_strategy: The strategy computing the base delay.
        response: The response of the attempt, if it returned one.
        jitter_factor: Factor for random jitter. 0 disables jitter.
        max_wait_time: Optional cap in seconds.

    Returns:
        The wait time in seconds, including any jitter.

    Example:
        ```pycon
        >>> from davexec.backoff import ExponentialBackoff
        >>> from davexec.utils.sleep import calculate_sleep_time
        >>> calculate_sleep_time(0, ExponentialBackoff(base_delay=1.0))
        1.0
        >>> calculate_sleep_time(3, ExponentialBackoff(base_delay=1.0))
        8.0
        >>> calculate_sleep_time(3, ExponentialBackoff(base_delay=1.0), max_wait_time=5.0)
        5.0

        ```
    """
    retry_after_sleep: float | None = None
    if response is not None:
        retry_after_sleep = parse_retry_after(response.header_field("Retry-After"))

    if retry_after_sleep is not None:
        sleep_time = retry_after_sleep
        logger.debug(f"Using Retry-After header value: {sleep_time:.2f}s")
    else:
        sleep_time = backoff_strategy.calculate(attempt)

    if max_wait_time is not None and sleep_time > max_wait_time:
        logger.debug(f"Capping sleep time from {sleep_time:.2f}s to {max_wait_time:.2f}s")
        sleep_time = max_wait_time

    if jitter_factor > 0:
        jitter = random.uniform(0, jitter_factor) * sleep_time  # noqa: S311
        logger.debug(
            f"Waiting {sleep_time + jitter:.2f}s before retry (base={sleep_time:.2f}s, jitter={jitter:.2f}s)"
        )
        return sleep_time + jitter

    logger.debug(f"Waiting {sleep_time:.2f}s before retry")
    return sleep_time
