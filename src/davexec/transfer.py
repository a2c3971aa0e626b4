r"""Request body transmission.

The ``TransferEncoder`` decides how the body of a request goes over the
wire:

- a streamed body is copied in fixed-size chunks, either with a declared
  ``Content-Length`` or with chunked transfer coding when the size is
  unknown, non-positive or too large, and always chunked when gzip
  compression is requested;
- an in-memory body (raw bytes or URL-encoded parameters) is sent with a
  fixed length, gzip-compressed only when compression saves more than
  ``MIN_COMPRESSED_ADVANTAGE`` bytes.
"""

from __future__ import annotations

__all__ = ["PreparedBody", "TransferEncoder", "TransferMode"]

import gzip
import logging
import zlib
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from davexec.core.config import (
    BUFFER_SIZE,
    HDR_CONTENT_ENCODING,
    HDR_CONTENT_LENGTH,
    HDR_CONTENT_TYPE,
    MAX_FIXED_LENGTH,
    MIME_BINARY,
    MIME_URLENCODED,
    MIN_COMPRESSED_ADVANTAGE,
)
from davexec.exceptions import TransportError
from davexec.utils.query import encode_params

if TYPE_CHECKING:
    from collections.abc import Generator, Iterable, Iterator, Mapping
    from typing import BinaryIO

    from davexec.body import BodyStreamProvider
    from davexec.request import RequestSpec

logger: logging.Logger = logging.getLogger(__name__)


class TransferMode(Enum):
    r"""How a request body is framed on the wire."""

    NONE = "none"
    FIXED_LENGTH = "fixed-length"
    CHUNKED = "chunked"


@dataclass
class PreparedBody:
    r"""A request body ready to be handed to the transport.

    Attributes:
        mode: The framing of the body.
        content: The body bytes, an iterator of chunks, or ``None``.
        headers: Headers to set on the request for this body. They
            replace headers of the same name.
        length: The declared length for fixed-length bodies.
    """

    mode: TransferMode
    content: bytes | Iterator[bytes] | None = None
    headers: dict[str, str] = field(default_factory=dict)
    length: int | None = None


def _has_header(headers: Mapping[str, str], name: str) -> bool:
    lowered = name.lower()
    return any(key.lower() == lowered for key in headers)


def _gzip_chunks(chunks: Iterable[bytes]) -> Iterator[bytes]:
    compressor = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, 16 + zlib.MAX_WBITS)
    for chunk in chunks:
        data = compressor.compress(chunk)
        if data:
            yield data
    yield compressor.flush()


class TransferEncoder:
    r"""Select the framing of a request body and produce its bytes.

    Args:
        buffer_size: Size of the chunks read from a body stream.
        min_compressed_advantage: Number of bytes gzip must save, and the
            minimum body size, before an in-memory body is compressed.
        max_fixed_length: Largest stream size declared as a fixed
            ``Content-Length``.

    Example:
        ```pycon
        >>> from davexec.request import HttpMethod, RequestSpec
        >>> from davexec.transfer import TransferEncoder, TransferMode
        >>> request = RequestSpec(HttpMethod.POST, "http://host/", params={"a": "b c"})
        >>> with TransferEncoder().prepare(request, {}) as body:
        ...     body.mode, body.content, body.headers["Content-Type"]
        ...
        (<TransferMode.FIXED_LENGTH: 'fixed-length'>, b'a=b+c', 'application/x-www-form-urlencoded')

        ```
    """

    def __init__(
        self,
        buffer_size: int = BUFFER_SIZE,
        min_compressed_advantage: int = MIN_COMPRESSED_ADVANTAGE,
        max_fixed_length: int = MAX_FIXED_LENGTH,
    ) -> None:
        if buffer_size < 1:
            msg = f"buffer_size must be >= 1, got {buffer_size}"
            raise ValueError(msg)
        self.buffer_size = buffer_size
        self.min_compressed_advantage = min_compressed_advantage
        self.max_fixed_length = max_fixed_length

    @contextmanager
    def prepare(
        self, request: RequestSpec, headers: Mapping[str, str]
    ) -> Generator[PreparedBody, None, None]:
        """Prepare the body of a request for the duration of a block.

        For a streamed body, the provider's stream is created on entry and
        destroyed exactly once on exit, whether the block succeeded or
        raised.

        Args:
            request: The request whose body is prepared.
            headers: The headers already set on the request. A
                ``Content-Type`` present there is kept.

        Yields:
            The prepared body. Its ``content`` must be consumed inside the
            block.

        Raises:
            TransportError: If the provider failed to create its stream.
        """
        provider = request.payload_stream
        if provider is not None:
            stream = self._create_stream(provider)
            try:
                yield self._stream_body(request, provider, stream, headers)
            finally:
                provider.destroy_stream(stream)
        elif request.payload is not None or request.params:
            yield self._memory_body(request, headers)
        else:
            yield PreparedBody(TransferMode.NONE)

    def compress_if_smaller(self, data: bytes) -> tuple[bytes, bool]:
        """Gzip ``data`` if it pays off.

        Args:
            data: The uncompressed body.

        Returns:
            The bytes to send and whether they are compressed. ``data`` is
            compressed only if it is larger than
            ``min_compressed_advantage`` and compression saves more than
            ``min_compressed_advantage`` bytes.

        Example:
            ```pycon
            >>> from davexec.transfer import TransferEncoder
            >>> encoder = TransferEncoder()
            >>> encoder.compress_if_smaller(b"short")
            (b'short', False)
            >>> data, compressed = encoder.compress_if_smaller(b"abc" * 1000)
            >>> compressed, len(data) < 3000
            (True, True)

            ```
        """
        if len(data) <= self.min_compressed_advantage:
            return data, False
        compressed = gzip.compress(data)
        if len(data) - len(compressed) > self.min_compressed_advantage:
            logger.debug(f"Compressed request body from {len(data)} to {len(compressed)} bytes")
            return compressed, True
        logger.debug(
            f"Sending request body uncompressed ({len(data)} bytes, gzip gives {len(compressed)})"
        )
        return data, False

    def _create_stream(self, provider: BodyStreamProvider) -> BinaryIO:
        try:
            return provider.create_stream()
        except TransportError:
            raise
        except Exception as exc:
            msg = f"failed to create body stream: {exc}"
            raise TransportError(msg, cause=exc) from exc

    def _read_chunks(self, stream: BinaryIO) -> Iterator[bytes]:
        while True:
            chunk = stream.read(self.buffer_size)
            if not chunk:
                return
            yield chunk

    def _stream_body(
        self,
        request: RequestSpec,
        provider: BodyStreamProvider,
        stream: BinaryIO,
        headers: Mapping[str, str],
    ) -> PreparedBody:
        body_headers: dict[str, str] = {}
        if not _has_header(headers, HDR_CONTENT_TYPE):
            body_headers[HDR_CONTENT_TYPE] = request.content_type or MIME_BINARY

        chunks = self._read_chunks(stream)
        if request.compress:
            # The compressed length is unknown until the stream is consumed
            body_headers[HDR_CONTENT_ENCODING] = "gzip"
            logger.debug("Streaming gzip-compressed request body with chunked transfer")
            return PreparedBody(TransferMode.CHUNKED, _gzip_chunks(chunks), body_headers)

        length = provider.payload_size(stream)
        if 0 < length <= self.max_fixed_length:
            body_headers[HDR_CONTENT_LENGTH] = str(length)
            logger.debug(f"Streaming request body with fixed length {length}")
            return PreparedBody(TransferMode.FIXED_LENGTH, chunks, body_headers, length)

        logger.debug(f"Streaming request body with chunked transfer (declared size {length})")
        return PreparedBody(TransferMode.CHUNKED, chunks, body_headers)

    def _memory_body(self, request: RequestSpec, headers: Mapping[str, str]) -> PreparedBody:
        body_headers: dict[str, str] = {}
        if request.payload is not None:
            data = request.payload
            content_type = request.content_type or MIME_BINARY
        else:
            data = encode_params(request.params).encode("utf-8")
            content_type = MIME_URLENCODED
        if not _has_header(headers, HDR_CONTENT_TYPE):
            body_headers[HDR_CONTENT_TYPE] = content_type

        if request.compress:
            data, compressed = self.compress_if_smaller(data)
            if compressed:
                body_headers[HDR_CONTENT_ENCODING] = "gzip"

        body_headers[HDR_CONTENT_LENGTH] = str(len(data))
        return PreparedBody(TransferMode.FIXED_LENGTH, data, body_headers, len(data))
