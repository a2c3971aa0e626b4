r"""Immutable description of a request to execute.

A ``RequestSpec`` is built once by the caller and then handed to an
executor or an execution strategy. Its invariants are checked when it is
built, so an invalid combination raises ``PreconditionError`` before any
network I/O happens.
"""

from __future__ import annotations

__all__ = ["HttpMethod", "RequestSpec"]

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from davexec.core.config import MAX_RETRY_COUNT, MAX_RETRY_COUNT_WITHOUT_WAIT
from davexec.core.validation import validate_retry_count
from davexec.exceptions import PreconditionError

if TYPE_CHECKING:
    from davexec.body import BodyStreamProvider


class HttpMethod(Enum):
    """HTTP methods, tagged with whether they can carry a request body.

    Example:
        ```pycon
        >>> from davexec.request import HttpMethod
        >>> HttpMethod.POST.can_have_body
        True
        >>> HttpMethod.GET.can_have_body
        False

        ```
    """

    GET = ("GET", False)
    POST = ("POST", True)
    PUT = ("PUT", True)
    DELETE = ("DELETE", False)
    PATCH = ("PATCH", True)
    HEAD = ("HEAD", False)
    OPTIONS = ("OPTIONS", False)

    def __init__(self, verb: str, can_have_body: bool) -> None:
        self.verb = verb
        self.can_have_body = can_have_body

    def __str__(self) -> str:
        return self.verb


@dataclass(frozen=True)
class RequestSpec:
    r"""Fully-specified description of one logical request.

    A request carries at most one body source: ``payload`` (bytes),
    ``payload_stream`` (a ``BodyStreamProvider``) or ``params``. On a
    method that cannot carry a body, ``params`` are sent as the query
    string instead.

    Args:
        method: The HTTP method.
        uri: The absolute target URI.
        headers: Request headers. Names keep the case given. A ``None``
            value removes the client default header of the same name.
        params: Query or form parameters. A list or tuple value sends one
            pair per element.
        payload: In-memory request body.
        payload_stream: Streaming request body provider.
        content_type: Content type of the body, if it should differ from
            the default for the body source.
        compress: Whether to gzip the request body.
        connect_timeout: Per-request connect timeout in seconds. ``None``
            uses the client setting, ``0`` disables the timeout.
        read_timeout: Per-request read timeout in seconds. ``None`` uses
            the client setting, ``0`` disables the timeout.
        follow_redirects: Per-request redirect policy. A streamed body
            never follows redirects.
        use_caches: Whether intermediaries may serve cached responses.
        if_modified_since: Value of the ``If-Modified-Since`` header, as a
            ``datetime`` or a POSIX timestamp.
        retry_count: Number of additional attempts, in ``[0, 10]``.
        wait_exponential: Whether to wait between attempts. Required for
            more than 3 retries.
        ensure_success: Whether a final non-2xx response is turned into an
            ``EnsureSuccessError``.

    Raises:
        PreconditionError: If the combination of fields is invalid.

    Example:
        ```pycon
        >>> from davexec.request import HttpMethod, RequestSpec
        >>> request = RequestSpec(HttpMethod.GET, "https://example.com", params={"q": "x"})
        >>> request.method.verb
        'GET'

        ```
    """

    method: HttpMethod
    uri: str
    headers: dict[str, Any] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    payload: bytes | None = None
    payload_stream: BodyStreamProvider | None = None
    content_type: str | None = None
    compress: bool = False
    connect_timeout: float | None = None
    read_timeout: float | None = None
    follow_redirects: bool | None = None
    use_caches: bool = False
    if_modified_since: datetime | float | None = None
    retry_count: int = 0
    wait_exponential: bool = False
    ensure_success: bool = False

    def __post_init__(self) -> None:
        if not self.uri:
            msg = "uri must not be empty"
            raise PreconditionError(msg)
        self._check_body()
        if self.payload_stream is not None and self.follow_redirects:
            msg = "Can't follow redirects when payload is streamed"
            raise PreconditionError(msg)
        for name in self.headers:
            if not name:
                msg = "header names must not be empty"
                raise PreconditionError(msg)
        for name, timeout in (
            ("connect_timeout", self.connect_timeout),
            ("read_timeout", self.read_timeout),
        ):
            if timeout is not None and timeout < 0:
                msg = f"{name} must be >= 0, got {timeout}"
                raise PreconditionError(msg)
        validate_retry_count(
            self.retry_count,
            self.wait_exponential,
            max_retry_count=MAX_RETRY_COUNT,
            max_without_wait=MAX_RETRY_COUNT_WITHOUT_WAIT,
        )

    def _check_body(self) -> None:
        has_body = self.payload is not None or self.payload_stream is not None
        if has_body and not self.method.can_have_body:
            msg = f"Method {self.method} can't have body"
            raise PreconditionError(msg)
        if not self.method.can_have_body:
            return
        sources = sum(
            (self.payload is not None, self.payload_stream is not None, bool(self.params))
        )
        if sources > 1:
            msg = "A request carries at most one body source (payload, payload_stream, params)"
            raise PreconditionError(msg)

    @property
    def effective_follow_redirects(self) -> bool | None:
        r"""The redirect policy of this request, ``None`` meaning the
        client default."""
        if self.payload_stream is not None:
            return False
        return self.follow_redirects
