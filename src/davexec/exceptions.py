r"""Exceptions raised while executing HTTP requests.

Every failure surfacing from an attempt, the retry loop or an execution
strategy is an ``ExecutionError``. The subclasses distinguish transport
failures, which the retry policy may consider recoverable, from protocol
and validation failures, which are always fatal.
"""

from __future__ import annotations

__all__ = [
    "EnsureSuccessError",
    "ExecutionError",
    "PreconditionError",
    "RejectedError",
    "TransportError",
    "UnsupportedEncodingError",
    "WaitInterruptedError",
]

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from davexec.response import Response


class ExecutionError(RuntimeError):
    r"""Base exception for failed request executions.

    Args:
        message: A descriptive error message.
        response: The response object, if the failure happened after the
            status and headers of the response were known.
        cause: The original exception, if any.

    Example:
        ```pycon
        >>> from davexec.exceptions import ExecutionError
        >>> error = ExecutionError("request failed")
        >>> error.response is None
        True
        >>> error.status_code is None
        True

        ```
    """

    def __init__(
        self,
        message: str,
        *,
        response: Response[Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.response = response
        self.cause = cause

    @property
    def status_code(self) -> int | None:
        r"""The status code of the attached response, if any."""
        if self.response is None:
            return None
        return self.response.status_code


class TransportError(ExecutionError):
    r"""Raised when the network exchange itself failed.

    This covers connection, timeout, handshake and I/O failures, including
    failures of a body stream provider. The original exception is
    available as ``cause`` and in the ``__cause__`` chain.
    """


class WaitInterruptedError(TransportError):
    r"""Raised when the wait between two attempts was interrupted.

    The ``cause`` is an ``InterruptedError`` so that callers can tell an
    interrupted wait apart from a timeout.
    """


class UnsupportedEncodingError(ExecutionError):
    r"""Raised when a response uses an unknown ``Content-Encoding``."""


class PreconditionError(ExecutionError, ValueError):
    r"""Raised when a request description is invalid.

    It is raised when the request is built, before any network I/O.
    """


class RejectedError(ExecutionError):
    r"""Raised when a task is submitted to a shut down strategy."""


class EnsureSuccessError(ExecutionError):
    r"""Raised when ensure-success semantics reject a final response.

    The failing response is always attached.
    """
