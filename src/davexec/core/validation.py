r"""Parameter validation utilities for requests and client settings.

This module provides validation functions run before any network I/O:
client configuration values raise ``ValueError`` while request
preconditions raise ``PreconditionError``.
"""

from __future__ import annotations

__all__ = ["validate_retry_count", "validate_timeout", "validate_workers"]

from davexec.exceptions import PreconditionError


def validate_timeout(timeout: float | None, name: str = "timeout") -> None:
    """Validate a timeout parameter.

    Args:
        timeout: Timeout in seconds, or ``None`` to disable it.
            Must be > 0 if provided.
        name: The parameter name used in the error message.

    Raises:
        ValueError: If timeout is a numeric value <= 0.

    Example:
        ```pycon
        >>> from davexec.core.validation import validate_timeout
        >>> validate_timeout(10.0)
        >>> validate_timeout(None)
        >>> validate_timeout(0)  # doctest: +SKIP
        Traceback (most recent call last):
        ...
        ValueError: timeout must be > 0, got 0

        ```
    """
    if timeout is not None and timeout <= 0:
        msg = f"{name} must be > 0, got {timeout}"
        raise ValueError(msg)


def validate_retry_count(
    retry_count: int,
    wait_exponential: bool,
    max_retry_count: int = 10,
    max_without_wait: int = 3,
) -> None:
    """Validate the retry settings of a request.

    Args:
        retry_count: Number of additional attempts after the first one.
            Must be in ``[0, max_retry_count]``.
        wait_exponential: Whether the retry loop waits between attempts.
            More than ``max_without_wait`` retries require waiting.
        max_retry_count: Upper bound for ``retry_count``.
        max_without_wait: Upper bound for ``retry_count`` without waiting.

    Raises:
        PreconditionError: If the retry settings are invalid.

    Example:
        ```pycon
        >>> from davexec.core.validation import validate_retry_count
        >>> validate_retry_count(3, wait_exponential=False)
        >>> validate_retry_count(10, wait_exponential=True)
        >>> validate_retry_count(5, wait_exponential=False)  # doctest: +SKIP
        Traceback (most recent call last):
        ...
        davexec.exceptions.PreconditionError: retries > 3 only valid with wait

        ```
    """
    if retry_count < 0 or retry_count > max_retry_count:
        msg = f"retry_count must be in [0, {max_retry_count}], got {retry_count}"
        raise PreconditionError(msg)
    if retry_count > max_without_wait and not wait_exponential:
        msg = f"retries > {max_without_wait} only valid with wait"
        raise PreconditionError(msg)


def validate_workers(workers: int) -> None:
    """Validate the number of worker threads of a pool.

    Args:
        workers: Number of worker threads. Must be >= 1.

    Raises:
        ValueError: If workers is < 1.
    """
    if workers < 1:
        msg = f"workers must be >= 1, got {workers}"
        raise ValueError(msg)
