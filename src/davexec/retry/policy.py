r"""Retry decisions and wait times between attempts.

A ``RetryPolicy`` is an explicit, immutable object handed to the retry
loop. It answers three questions: is another attempt useful after this
response, is this error recoverable, and how long to wait before the
next attempt.
"""

from __future__ import annotations

__all__ = ["DEFAULT_RETRY_POLICY", "RetryPolicy"]

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from davexec.backoff import ExponentialBackoff
from davexec.core.config import DEFAULT_BACKOFF_UNIT, RETRY_STATUS_CODES
from davexec.exceptions import ExecutionError, TransportError, WaitInterruptedError
from davexec.utils.sleep import calculate_sleep_time

if TYPE_CHECKING:
    from collections.abc import Callable

    from davexec.backoff.base import BaseBackoffStrategy
    from davexec.response import Response

logger: logging.Logger = logging.getLogger(__name__)

# Transport failures worth another attempt
RECOVERABLE_CAUSES = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    ConnectionError,
    TimeoutError,
)


@dataclass(frozen=True)
class RetryPolicy:
    r"""Policy deciding whether and when to attempt a request again.

    Args:
        status_forcelist: Status codes for which another attempt is
            useful.
        backoff_strategy: Strategy computing the wait before the next
            attempt.
        jitter_factor: Factor for random jitter added to the wait. 0
            disables jitter.
        max_wait_time: Optional cap in seconds on a single wait.
        retry_if: Optional predicate ``(response, error) -> bool``
            replacing the default decisions. Exactly one of its arguments
            is ``None``.

    Example:
        ```pycon
        >>> from davexec.response import Response
        >>> from davexec.retry import RetryPolicy
        >>> policy = RetryPolicy()
        >>> policy.is_retry_useful(Response(503))
        True
        >>> policy.is_retry_useful(Response(404))
        False
        >>> policy.delay(2)
        4.0

        ```
    """

    status_forcelist: tuple[int, ...] = RETRY_STATUS_CODES
    backoff_strategy: BaseBackoffStrategy = field(
        default_factory=lambda: ExponentialBackoff(base_delay=DEFAULT_BACKOFF_UNIT)
    )
    jitter_factor: float = 0.0
    max_wait_time: float | None = None
    retry_if: Callable[[Response[Any] | None, ExecutionError | None], bool] | None = None

    def __post_init__(self) -> None:
        if self.jitter_factor < 0:
            msg = f"jitter_factor must be >= 0, got {self.jitter_factor}"
            raise ValueError(msg)
        if self.max_wait_time is not None and self.max_wait_time <= 0:
            msg = f"max_wait_time must be > 0, got {self.max_wait_time}"
            raise ValueError(msg)

    def is_retry_useful(self, response: Response[Any]) -> bool:
        """Return whether another attempt may produce a better response."""
        if self.retry_if is not None:
            return bool(self.retry_if(response, None))
        return response.status_code in self.status_forcelist

    def is_recoverable(self, error: ExecutionError) -> bool:
        """Return whether ``error`` is a transient transport failure.

        Protocol and validation errors are never recoverable, and neither
        is an interrupted wait.
        """
        if isinstance(error, WaitInterruptedError):
            return False
        if self.retry_if is not None:
            return bool(self.retry_if(None, error))
        if not isinstance(error, TransportError):
            return False
        return isinstance(error.cause, RECOVERABLE_CAUSES)

    def delay(self, attempt: int, response: Response[Any] | None = None) -> float:
        """Return the wait in seconds after attempt ``attempt`` (0-indexed).

        A ``Retry-After`` header on ``response`` takes precedence over the
        backoff strategy.
        """
        return calculate_sleep_time(
            attempt,
            self.backoff_strategy,
            response=response,
            jitter_factor=self.jitter_factor,
            max_wait_time=self.max_wait_time,
        )


# Policy used by clients that do not configure one
DEFAULT_RETRY_POLICY = RetryPolicy()
