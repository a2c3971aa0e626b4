r"""Execution of a single request/response cycle.

One attempt opens its own ``httpx.Client``, sends the request, builds the
``Response`` from the status line and headers, decodes the body through
the response translator and releases every resource it opened, whatever
the outcome.
"""

from __future__ import annotations

__all__ = ["AttemptExecutor"]

import logging
import zlib
from typing import TYPE_CHECKING, Any, TypeVar

import httpx

from davexec.core.config import (
    ACCEPT_ENCODING,
    HDR_ACCEPT_ENCODING,
    HDR_CACHE_CONTROL,
    HDR_IF_MODIFIED_SINCE,
    ClientConfig,
)
from davexec.decoding import translate_body
from davexec.exceptions import ExecutionError, TransportError
from davexec.response import Response
from davexec.transfer import TransferEncoder
from davexec.utils.dates import format_header_value, format_http_date
from davexec.utils.query import append_query

if TYPE_CHECKING:
    from collections.abc import Iterable

    from davexec.request import RequestSpec
    from davexec.translators import ResponseTranslator

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures of the network exchange, wrapped into ``TransportError``
TRANSPORT_EXCEPTIONS = (
    httpx.HTTPError,
    httpx.InvalidURL,
    httpx.StreamError,
    OSError,
    zlib.error,
    EOFError,
)


def _resolve_timeout(override: float | None, default: float | None) -> float | None:
    if override is None:
        return default
    # 0 disables the timeout
    return override or None


def _raw_chunks(http_response: httpx.Response) -> Iterable[bytes]:
    # Transports may hand back a response that was already read, in which
    # case the raw bytes are still available from its stream
    if http_response.is_stream_consumed:
        return http_response.stream
    return http_response.iter_raw()


class AttemptExecutor:
    r"""Perform exactly one request/response cycle.

    Args:
        config: The client-wide settings. Defaults to ``ClientConfig()``.
        encoder: The encoder sending request bodies. Defaults to
            ``TransferEncoder()``.

    Example:
        ```pycon
        >>> import httpx
        >>> from davexec.attempt import AttemptExecutor
        >>> from davexec.core import ClientConfig
        >>> from davexec.request import HttpMethod, RequestSpec
        >>> from davexec.translators import StringTranslator
        >>> transport = httpx.MockTransport(lambda request: httpx.Response(200, text="pong"))
        >>> executor = AttemptExecutor(ClientConfig(transport=transport))
        >>> response = executor.attempt(
        ...     RequestSpec(HttpMethod.GET, "http://example.com/ping"), StringTranslator()
        ... )
        >>> response.status_code, response.body
        (200, 'pong')

        ```
    """

    def __init__(
        self, config: ClientConfig | None = None, encoder: TransferEncoder | None = None
    ) -> None:
        self.config = config or ClientConfig()
        self.encoder = encoder or TransferEncoder()

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(config={self.config!r})"

    def attempt(
        self, request: RequestSpec, translator: ResponseTranslator[T] | None = None
    ) -> Response[T]:
        """Send ``request`` once and decode its response.

        Args:
            request: The request to send.
            translator: The translator decoding the body. If ``None``, the
                body is not read and ``Response.body`` stays ``None``.

        Returns:
            The response, whatever its status code.

        Raises:
            TransportError: If the network exchange failed. The response is
                attached if its status and headers were received.
            ExecutionError: If the response could not be decoded. The
                response is attached.
        """
        uri = request.uri
        if not request.method.can_have_body:
            uri = append_query(uri, request.params)

        response: Response[Any] | None = None
        client: httpx.Client | None = None
        http_response: httpx.Response | None = None
        try:
            client = self._open_client(request)
            headers = self._prepare_headers(request)
            follow_redirects = self._follow_redirects(request)
            logger.debug(f"Sending {request.method} request to {uri}")
            if request.method.can_have_body:
                with self.encoder.prepare(request, headers) as body:
                    headers.update(body.headers)
                    http_request = client.build_request(
                        request.method.verb, uri, headers=headers, content=body.content
                    )
                    http_response = client.send(
                        http_request, stream=True, follow_redirects=follow_redirects
                    )
            else:
                http_request = client.build_request(request.method.verb, uri, headers=headers)
                http_response = client.send(
                    http_request, stream=True, follow_redirects=follow_redirects
                )

            response = Response.from_httpx(request, http_response)
            logger.debug(f"{request.method} request to {uri} returned {response.status_line}")
            translate_body(response, translator, _raw_chunks(http_response))
            return response
        except ExecutionError as exc:
            if exc.response is None:
                exc.response = response
            raise
        except TRANSPORT_EXCEPTIONS as exc:
            msg = f"{request.method} request to {uri} failed: {exc}"
            raise TransportError(msg, response=response, cause=exc) from exc
        finally:
            if http_response is not None:
                http_response.close()
            # An injected transport is shared with later attempts
            if client is not None and self.config.transport is None:
                client.close()

    def _open_client(self, request: RequestSpec) -> httpx.Client:
        connect = _resolve_timeout(request.connect_timeout, self.config.connect_timeout)
        read = _resolve_timeout(request.read_timeout, self.config.read_timeout)
        return httpx.Client(
            transport=self.config.transport,
            timeout=httpx.Timeout(read, connect=connect),
            headers={HDR_ACCEPT_ENCODING: ACCEPT_ENCODING},
        )

    def _prepare_headers(self, request: RequestSpec) -> httpx.Headers:
        merged = dict(self.config.default_headers)
        for name, value in request.headers.items():
            lowered = name.lower()
            for existing in [key for key in merged if key.lower() == lowered]:
                del merged[existing]
            if value is not None:
                merged[name] = value
        headers = httpx.Headers(
            [
                (name, format_header_value(value))
                for name, value in merged.items()
                if value is not None
            ]
        )
        if request.if_modified_since is not None and HDR_IF_MODIFIED_SINCE not in headers:
            headers[HDR_IF_MODIFIED_SINCE] = format_http_date(request.if_modified_since)
        if not request.use_caches and HDR_CACHE_CONTROL not in headers:
            headers[HDR_CACHE_CONTROL] = "no-cache"
        return headers

    def _follow_redirects(self, request: RequestSpec) -> bool:
        follow_redirects = request.effective_follow_redirects
        if follow_redirects is None:
            return self.config.follow_redirects
        return follow_redirects
