r"""Retry loop wrapping single attempts.

``RetryingExecutor.run`` performs up to ``retry_count + 1`` attempts of a
request. After each attempt the retry policy decides whether the result
is final. Between two attempts the executor optionally waits, and that
wait can be interrupted through a ``threading.Event``.
"""

from __future__ import annotations

__all__ = ["RetryingExecutor"]

import logging
import time
from typing import TYPE_CHECKING, Any, TypeVar

from davexec.attempt import AttemptExecutor
from davexec.exceptions import ExecutionError, WaitInterruptedError
from davexec.utils.structured_logging import log_structured

if TYPE_CHECKING:
    import threading

    from davexec.core.config import ClientConfig
    from davexec.request import RequestSpec
    from davexec.response import Response
    from davexec.retry.policy import RetryPolicy
    from davexec.translators import ResponseTranslator

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryingExecutor:
    r"""Execute a request with retries governed by a retry policy.

    Args:
        attempt_executor: The executor performing each attempt.
        policy: The retry policy. Defaults to the policy of the attempt
            executor's config.

    Example:
        ```pycon
        >>> import httpx
        >>> from davexec.attempt import AttemptExecutor
        >>> from davexec.core import ClientConfig
        >>> from davexec.request import HttpMethod, RequestSpec
        >>> from davexec.retry import RetryingExecutor
        >>> transport = httpx.MockTransport(lambda request: httpx.Response(204))
        >>> executor = RetryingExecutor(AttemptExecutor(ClientConfig(transport=transport)))
        >>> executor.run(RequestSpec(HttpMethod.DELETE, "http://example.com/x")).status_code
        204

        ```
    """

    def __init__(
        self, attempt_executor: AttemptExecutor, policy: RetryPolicy | None = None
    ) -> None:
        self.attempt_executor = attempt_executor
        self.policy = policy or attempt_executor.config.retry_policy

    @classmethod
    def from_config(cls, config: ClientConfig) -> RetryingExecutor:
        r"""Create an executor using the settings and retry policy of
        ``config``."""
        return cls(AttemptExecutor(config), config.retry_policy)

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(policy={self.policy!r})"

    def run(
        self,
        request: RequestSpec,
        translator: ResponseTranslator[T] | None = None,
        interrupt: threading.Event | None = None,
    ) -> Response[T]:
        """Execute ``request`` until the result is final.

        Args:
            request: The request to execute.
            translator: The translator decoding the response body.
            interrupt: Optional event aborting the wait between attempts
                when set.

        Returns:
            The response of the last attempt.

        Raises:
            ExecutionError: The error of the last attempt, if it failed.
            WaitInterruptedError: If the wait between two attempts was
                interrupted.
            EnsureSuccessError: If ``request.ensure_success`` is set and
                the last response is not a success.
        """
        max_retries = request.retry_count
        provider = request.payload_stream
        if max_retries > 0 and provider is not None and not provider.repeatable:
            logger.debug(
                f"Not retrying {request.method} request to {request.uri}: "
                "body stream is not repeatable"
            )
            max_retries = 0

        response: Response[Any] | None = None
        for attempt in range(max_retries + 1):
            response = None
            try:
                response = self.attempt_executor.attempt(request, translator)
            except ExecutionError as exc:
                if attempt >= max_retries or not self.policy.is_recoverable(exc):
                    logger.debug(
                        f"{request.method} request to {request.uri} failed "
                        f"({attempt + 1} attempts): {exc}"
                    )
                    raise
                logger.debug(
                    f"{request.method} request to {request.uri} failed with recoverable "
                    f"error (attempt {attempt + 1}/{max_retries + 1}): {exc}"
                )
                last_response = exc.response
            else:
                if attempt >= max_retries or not self.policy.is_retry_useful(response):
                    break
                logger.debug(
                    f"{request.method} request to {request.uri} returned status "
                    f"{response.status_code} (attempt {attempt + 1}/{max_retries + 1})"
                )
                last_response = response

            if request.wait_exponential:
                self._wait(self.policy.delay(attempt, last_response), interrupt)

        log_structured(
            logger,
            logging.DEBUG,
            f"{request.method} request to {request.uri} completed",
            method=str(request.method),
            uri=request.uri,
            status_code=response.status_code,
            attempts=attempt + 1,
        )
        if request.ensure_success:
            response.ensure_success()
        return response

    def _wait(self, delay: float, interrupt: threading.Event | None) -> None:
        if interrupt is None:
            time.sleep(delay)
            return
        if interrupt.wait(delay):
            msg = f"wait of {delay:.2f}s between attempts was interrupted"
            cause = InterruptedError(msg)
            raise WaitInterruptedError(msg, cause=cause) from cause
