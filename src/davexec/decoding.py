r"""Response body decoding.

This module selects the decompression filter matching the
``Content-Encoding`` of a response and hands the decoded bytes to a
response translator. Supported encodings are ``identity``, ``gzip`` (and
its ``x-gzip`` alias) and raw ``deflate``. Any other encoding is an
error, never a silent pass-through.
"""

from __future__ import annotations

__all__ = ["ChunkStream", "decode_stream", "translate_body"]

import io
import logging
import zlib
from typing import TYPE_CHECKING, Any, TypeVar

import httpx

from davexec.exceptions import ExecutionError, UnsupportedEncodingError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from davexec.response import Response
    from davexec.translators import ResponseTranslator

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")

_GZIP_WBITS = 16 + zlib.MAX_WBITS
_RAW_DEFLATE_WBITS = -zlib.MAX_WBITS


def _decompress(chunks: Iterable[bytes], wbits: int) -> Iterator[bytes]:
    decompressor = zlib.decompressobj(wbits)
    received = False
    for chunk in chunks:
        received = received or bool(chunk)
        data = decompressor.decompress(chunk)
        if data:
            yield data
    if received and not decompressor.eof:
        msg = "compressed response body ended before the end of the compressed data"
        raise EOFError(msg)
    tail = decompressor.flush()
    if tail:
        yield tail


def decode_stream(content_encoding: str | None, chunks: Iterable[bytes]) -> Iterator[bytes]:
    """Wrap raw body chunks in the filter matching a content encoding.

    The encoding is checked immediately; decompression itself is lazy.

    Args:
        content_encoding: The ``Content-Encoding`` header value, or
            ``None`` if the response has none.
        chunks: The raw body bytes as received.

    Returns:
        An iterator over the decoded body bytes.

    Raises:
        UnsupportedEncodingError: If the encoding is not supported.

    Example:
        ```pycon
        >>> import gzip
        >>> from davexec.decoding import decode_stream
        >>> b"".join(decode_stream("gzip", [gzip.compress(b"hello")]))
        b'hello'
        >>> b"".join(decode_stream(None, [b"raw"]))
        b'raw'

        ```
    """
    encoding = None if content_encoding is None else content_encoding.strip().lower()
    if not encoding or encoding == "identity":
        return iter(chunks)
    if encoding in ("gzip", "x-gzip"):
        return _decompress(chunks, _GZIP_WBITS)
    if encoding == "deflate":
        return _decompress(chunks, _RAW_DEFLATE_WBITS)
    msg = f"unsupported content-encoding: {content_encoding}"
    raise UnsupportedEncodingError(msg)


class ChunkStream(io.RawIOBase):
    r"""Read-only binary stream over an iterator of byte chunks.

    Args:
        chunks: The chunks to read from.
        initial: Bytes already taken from ``chunks`` that must be read
            first.

    Example:
        ```pycon
        >>> import io
        >>> from davexec.decoding import ChunkStream
        >>> stream = io.BufferedReader(ChunkStream(iter([b"ab", b"cd"])))
        >>> stream.read(3), stream.read()
        (b'abc', b'd')

        ```
    """

    def __init__(self, chunks: Iterator[bytes], initial: bytes = b"") -> None:
        super().__init__()
        self._chunks = chunks
        self._pending = initial

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
        view = memoryview(buffer).cast("B")
        size = min(len(view), len(self._pending))
        view[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size


def _first_chunk(chunks: Iterator[bytes]) -> bytes:
    for chunk in chunks:
        if chunk:
            return chunk
    return b""


def translate_body(
    response: Response[T],
    translator: ResponseTranslator[T] | None,
    chunks: Iterable[bytes],
) -> None:
    """Decode a response body and store the translated value.

    The content encoding of ``response`` selects the decompression filter.
    If the decoded body has no bytes, ``translator.decode_empty_body`` is
    called and no stream is created. Without a translator the body is
    left unset and ``chunks`` is not read.

    Args:
        response: The response whose ``body`` is assigned.
        translator: The translator, or ``None``.
        chunks: The raw body bytes as received.

    Raises:
        UnsupportedEncodingError: If the content encoding is not supported.
        ExecutionError: If the translator failed.
    """
    decoded = decode_stream(response.content_encoding, chunks)
    if translator is None:
        return

    first = _first_chunk(decoded)
    try:
        if not first:
            response.body = translator.decode_empty_body(response)
        else:
            with io.BufferedReader(ChunkStream(decoded, initial=first)) as stream:
                response.body = translator.decode(response, stream)
    except (
        ExecutionError,
        httpx.HTTPError,
        httpx.StreamError,
        OSError,
        EOFError,
        zlib.error,
    ):
        # Transport failures while reading the body are classified by the attempt
        raise
    except Exception as exc:
        msg = f"failed to decode response body: {exc}"
        raise ExecutionError(msg, response=response, cause=exc) from exc
