r"""davexec - HTTP(S) request execution engine.

This package executes fully-specified HTTP requests on top of httpx: one
attempt sends the request and decodes the response through a pluggable
translator, a retry loop repeats attempts under an explicit retry policy,
and execution strategies dispatch requests inline or onto a pool of
worker threads.

Key Features:
    - Fixed-length or chunked request bodies, streamed from a provider
    - Optional gzip request compression, applied only when it pays off
    - gzip and deflate response decoding, unknown encodings rejected
    - Retries on transient status codes and transport failures, with
      interruptible exponential waits and Retry-After support
    - Synchronous and thread-pool execution with success/failure callbacks
    - Ensure-success mode turning non-2xx responses into errors

Example:
    ```pycon
    >>> from davexec import Client, HttpMethod, RequestSpec, StringTranslator
    >>> with Client() as client:  # doctest: +SKIP
    ...     response = client.execute(
    ...         RequestSpec(HttpMethod.GET, "https://api.example.com/data", retry_count=3),
    ...         StringTranslator(),
    ...     )
    ...

    ```
"""

from __future__ import annotations

__all__ = [
    "AsyncPoolStrategy",
    "AttemptExecutor",
    "BodyStreamProvider",
    "BytesStreamProvider",
    "BytesTranslator",
    "Client",
    "ClientConfig",
    "EnsureSuccessError",
    "ExecutionError",
    "ExecutionStrategy",
    "FileStreamProvider",
    "FunctionCallback",
    "HttpMethod",
    "PreconditionError",
    "RejectedError",
    "RequestSpec",
    "Response",
    "ResponseCallback",
    "ResponseTranslator",
    "RetryPolicy",
    "RetryingExecutor",
    "StringTranslator",
    "SynchronousStrategy",
    "TransferEncoder",
    "TransportError",
    "UnsupportedEncodingError",
    "WaitInterruptedError",
    "__version__",
]

from importlib.metadata import PackageNotFoundError, version

from davexec.attempt import AttemptExecutor
from davexec.body import BodyStreamProvider, BytesStreamProvider, FileStreamProvider
from davexec.client import Client
from davexec.core.config import ClientConfig
from davexec.exceptions import (
    EnsureSuccessError,
    ExecutionError,
    PreconditionError,
    RejectedError,
    TransportError,
    UnsupportedEncodingError,
    WaitInterruptedError,
)
from davexec.request import HttpMethod, RequestSpec
from davexec.response import Response
from davexec.retry import RetryingExecutor, RetryPolicy
from davexec.strategy import (
    AsyncPoolStrategy,
    ExecutionStrategy,
    FunctionCallback,
    ResponseCallback,
    SynchronousStrategy,
)
from davexec.transfer import TransferEncoder
from davexec.translators import BytesTranslator, ResponseTranslator, StringTranslator

try:
    __version__ = version(__name__)
except PackageNotFoundError:  # pragma: no cover
    # Package is not installed, fallback if needed
    __version__ = "0.0.0"
