r"""Exponential backoff strategy."""

from __future__ import annotations

__all__ = ["ExponentialBackoff"]

from davexec.backoff.base import BaseBackoffStrategy


class ExponentialBackoff(BaseBackoffStrategy):
    """Exponential backoff strategy, doubling from a base unit.

    Calculates delay as: base_delay * (2 ** attempt), with optional max_delay cap.

    This is the strategy of the default retry policy, with a base unit of
    one second.

    Args:
        base_delay: The base unit in seconds.
        max_delay: Optional maximum delay cap in seconds.

    Example:
        ```pycon
        >>> from davexec.backoff import ExponentialBackoff
        >>> backoff = ExponentialBackoff(base_delay=1.0)
        >>> [backoff.calculate(attempt) for attempt in range(4)]
        [1.0, 2.0, 4.0, 8.0]
        >>> backoff = ExponentialBackoff(base_delay=1.0, max_delay=5.0)
        >>> backoff.calculate(10)
        5.0

        ```
    """

    def __init__(self, base_delay: float = 1.0, max_delay: float | None = None) -> None:
        if base_delay < 0:
            msg = f"base_delay must be non-negative, got {base_delay}"
            raise ValueError(msg)
        if max_delay is not None and max_delay <= 0:
            msg = f"max_delay must be positive if specified, got {max_delay}"
            raise ValueError(msg)

        self.base_delay = base_delay
        self.max_delay = max_delay

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(base_delay={self.base_delay}, max_delay={self.max_delay})"

    def calculate(self, attempt: int) -> float:
        delay = self.base_delay * (2**attempt)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay
