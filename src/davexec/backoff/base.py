r"""Abstract base class for backoff strategies."""

from __future__ import annotations

__all__ = ["BaseBackoffStrategy"]

from abc import ABC, abstractmethod


class BaseBackoffStrategy(ABC):
    """Abstract base class for backoff strategies.

    A backoff strategy maps the index of a failed attempt to the number
    of seconds the retry loop waits before the next attempt.
    """

    @abstractmethod
    def calculate(self, attempt: int) -> float:
        """Calculate the wait before the attempt following ``attempt``.

        Args:
            attempt: The index of the attempt that just finished
                (0-indexed). ``attempt=0`` is the wait before the first
                retry.

        Returns:
            The delay in seconds.
        """
