r"""Client facade over the request execution engine.

The ``Client`` wires a ``ClientConfig`` into the attempt executor, the
retry loop and an execution strategy, and owns the lifecycle of that
strategy.
"""

from __future__ import annotations

__all__ = ["Client"]

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from davexec.attempt import AttemptExecutor
from davexec.core.config import ClientConfig
from davexec.exceptions import PreconditionError
from davexec.request import HttpMethod, RequestSpec
from davexec.retry.executor import RetryingExecutor
from davexec.strategy import AsyncPoolStrategy, FunctionCallback, SynchronousStrategy

if TYPE_CHECKING:
    from types import TracebackType
    from typing import Self

    from davexec.response import Response
    from davexec.strategy import ExecutionStrategy, ResponseCallback
    from davexec.transfer import TransferEncoder
    from davexec.translators import ResponseTranslator

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")


class Client:
    r"""Execute requests with shared settings.

    ``execute`` always runs on the caller's thread and raises on failure.
    ``submit`` goes through the execution strategy: inline when
    ``workers`` is 0, otherwise on a pool of ``workers`` threads. Leaving
    the ``with`` block shuts the strategy down and waits for the
    submitted requests.

    Args:
        config: The client-wide settings. If ``None``, a default
            ``ClientConfig`` is used.
        workers: The number of worker threads used by ``submit``. 0
            selects the synchronous strategy.
        encoder: Optional transfer encoder for request bodies.

    Raises:
        ValueError: If ``workers`` is negative.

    Example:
        ```pycon
        >>> import httpx
        >>> from davexec import Client, ClientConfig, StringTranslator
        >>> transport = httpx.MockTransport(lambda request: httpx.Response(200, text="hello"))
        >>> with Client(ClientConfig(transport=transport)) as client:
        ...     response = client.request("GET", "http://example.com", StringTranslator())
        ...
        >>> response.body
        'hello'

        ```
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        workers: int = 0,
        encoder: TransferEncoder | None = None,
    ) -> None:
        if workers < 0:
            msg = f"workers must be >= 0, got {workers}"
            raise ValueError(msg)
        self.config = config or ClientConfig()
        self.executor = RetryingExecutor(
            AttemptExecutor(self.config, encoder), self.config.retry_policy
        )
        self.strategy: ExecutionStrategy
        if workers:
            self.strategy = AsyncPoolStrategy(self.executor, workers)
        else:
            self.strategy = SynchronousStrategy(self.executor)

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(config={self.config!r}, strategy={self.strategy!r})"

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self, immediate: bool = False, timeout: float | None = None) -> None:
        """Shut the execution strategy down and wait for its workers.

        Args:
            immediate: Whether to abandon the queued requests.
            timeout: Maximum number of seconds to wait for the workers.
        """
        self.strategy.shutdown(immediate=immediate, wait=True, timeout=timeout)

    def execute(
        self, request: RequestSpec, translator: ResponseTranslator[T] | None = None
    ) -> Response[T]:
        """Execute ``request`` on the caller's thread.

        Args:
            request: The request to execute.
            translator: The translator decoding the response body.

        Returns:
            The final response.

        Raises:
            ExecutionError: If the execution failed.
        """
        return self.executor.run(request, translator)

    def submit(
        self,
        request: RequestSpec,
        translator: ResponseTranslator[T] | None = None,
        callback: ResponseCallback[T] | None = None,
    ) -> None:
        """Hand ``request`` to the execution strategy.

        Args:
            request: The request to execute.
            translator: The translator decoding the response body.
            callback: The callback receiving the outcome. If ``None``,
                the outcome is discarded.
        """
        self.strategy.execute(request, translator, callback or FunctionCallback())

    def request(
        self,
        method: HttpMethod | str,
        uri: str,
        translator: ResponseTranslator[T] | None = None,
        **kwargs: Any,
    ) -> Response[T]:
        """Build a ``RequestSpec`` and execute it on the caller's thread.

        Args:
            method: The HTTP method, as ``HttpMethod`` or its name.
            uri: The target URI.
            translator: The translator decoding the response body.
            **kwargs: The other ``RequestSpec`` fields.

        Returns:
            The final response.

        Raises:
            PreconditionError: If the request is invalid.
            ExecutionError: If the execution failed.
        """
        if isinstance(method, str):
            try:
                method = HttpMethod[method.upper()]
            except KeyError as exc:
                msg = f"unsupported HTTP method: {method}"
                raise PreconditionError(msg) from exc
        return self.execute(RequestSpec(method, uri, **kwargs), translator)
