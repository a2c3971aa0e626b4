r"""Configuration dataclass and defaults for the request execution engine.

This module provides configuration constants and a dataclass-based
configuration object holding the client-wide settings used by every
attempt: default headers, timeouts, redirect policy, retry policy and an
optional injected transport.
"""

from __future__ import annotations

__all__ = [
    "ACCEPT_ENCODING",
    "BUFFER_SIZE",
    "DEFAULT_BACKOFF_UNIT",
    "DEFAULT_CONNECT_TIMEOUT",
    "DEFAULT_FOLLOW_REDIRECTS",
    "DEFAULT_READ_TIMEOUT",
    "HDR_ACCEPT_ENCODING",
    "HDR_CACHE_CONTROL",
    "HDR_CONTENT_ENCODING",
    "HDR_CONTENT_LENGTH",
    "HDR_CONTENT_TYPE",
    "HDR_IF_MODIFIED_SINCE",
    "MAX_FIXED_LENGTH",
    "MAX_RETRY_COUNT",
    "MAX_RETRY_COUNT_WITHOUT_WAIT",
    "MIME_BINARY",
    "MIME_JSON",
    "MIME_TEXT_PLAIN",
    "MIME_URLENCODED",
    "MIN_COMPRESSED_ADVANTAGE",
    "RETRY_STATUS_CODES",
    "ClientConfig",
]

import sys
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from davexec.core.validation import validate_timeout

if TYPE_CHECKING:
    import httpx

    from davexec.retry.policy import RetryPolicy


# Default timeout in seconds for establishing a connection
DEFAULT_CONNECT_TIMEOUT = 10.0

# Default timeout in seconds for reading the response (3 minutes)
DEFAULT_READ_TIMEOUT = 180.0

# Redirects (HTTP status 3xx) are followed unless a request says otherwise
DEFAULT_FOLLOW_REDIRECTS = True

# Base unit of the exponential wait between retries
# Wait time = unit * (2 ** attempt): 1s, 2s, 4s, 8s, ...
DEFAULT_BACKOFF_UNIT = 1.0

# HTTP status codes for which another attempt is considered useful
# 429: Too Many Requests - Rate limiting
# 500: Internal Server Error - Temporary server issue
# 502: Bad Gateway - Upstream server error
# 503: Service Unavailable - Server overloaded or down
# 504: Gateway Timeout - Upstream server timeout
RETRY_STATUS_CODES = (429, 500, 502, 503, 504)

# Retry count bounds for a single request
MAX_RETRY_COUNT = 10
MAX_RETRY_COUNT_WITHOUT_WAIT = 3

# Size of the chunks copied from a body stream to the connection
BUFFER_SIZE = 1024

# Minimum number of bytes gzip must save before a compressed body is sent
MIN_COMPRESSED_ADVANTAGE = 80

# Largest body size declared as a fixed Content-Length, with a safety margin
MAX_FIXED_LENGTH = sys.maxsize - 8

# MIME types
MIME_URLENCODED = "application/x-www-form-urlencoded"
MIME_JSON = "application/json"
MIME_BINARY = "application/octet-stream"
MIME_TEXT_PLAIN = "text/plain"

# Headers
HDR_ACCEPT_ENCODING = "Accept-Encoding"
HDR_CACHE_CONTROL = "Cache-Control"
HDR_CONTENT_ENCODING = "Content-Encoding"
HDR_CONTENT_LENGTH = "Content-Length"
HDR_CONTENT_TYPE = "Content-Type"
HDR_IF_MODIFIED_SINCE = "If-Modified-Since"

# Only the encodings the response decoder understands are advertised
ACCEPT_ENCODING = "gzip, deflate"


def _default_retry_policy() -> RetryPolicy:
    from davexec.retry.policy import DEFAULT_RETRY_POLICY

    return DEFAULT_RETRY_POLICY


@dataclass
class ClientConfig:
    """Client-wide settings shared by every request of a ``Client``.

    Per-request values on a ``RequestSpec`` (timeouts, redirect policy,
    headers) take precedence over the values defined here.

    Args:
        connect_timeout: Seconds to wait for a connection. ``None``
            disables the timeout. Must be > 0 otherwise.
        read_timeout: Seconds to wait for the server response. ``None``
            disables the timeout. Must be > 0 otherwise.
        follow_redirects: Whether redirects are followed by default.
        default_headers: Headers sent with every request. A request
            header with the same name wins.
        retry_policy: Policy deciding whether another attempt is useful
            and how long to wait before it.
        transport: Optional ``httpx`` transport used for every attempt.
            If ``None``, each attempt opens its own transport, and
            therefore its own connection.

    Example:
        ```pycon
        >>> from davexec.core.config import ClientConfig
        >>> config = ClientConfig()
        >>> config.connect_timeout
        10.0
        >>> config = config.merge(read_timeout=30.0)
        >>> config.read_timeout
        30.0

        ```
    """

    connect_timeout: float | None = DEFAULT_CONNECT_TIMEOUT
    read_timeout: float | None = DEFAULT_READ_TIMEOUT
    follow_redirects: bool = DEFAULT_FOLLOW_REDIRECTS
    default_headers: dict[str, Any] = field(default_factory=dict)
    retry_policy: RetryPolicy = field(default_factory=_default_retry_policy)
    transport: httpx.BaseTransport | None = None

    def __post_init__(self) -> None:
        validate_timeout(self.connect_timeout, name="connect_timeout")
        validate_timeout(self.read_timeout, name="read_timeout")

    def merge(self, **overrides: Any) -> ClientConfig:
        """Create a new config with specified parameters overridden.

        Only non-None override values are applied.

        Args:
            **overrides: Keyword arguments for parameters to override.

        Returns:
            A new ClientConfig instance with overrides applied.

        Example:
            ```pycon
            >>> from davexec.core.config import ClientConfig
            >>> config = ClientConfig(follow_redirects=False)
            >>> config.merge(follow_redirects=None).follow_redirects
            False

            ```
        """
        filtered_overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **filtered_overrides)
