r"""Response translators decoding a response body into a typed value.

A translator receives the decoded (decompressed) body as a readable
binary stream. Responses without body bytes go through
``decode_empty_body`` instead, so a translator never sees a zero-length
stream. Translator instances may be shared between threads and must not
keep per-call state.
"""

from __future__ import annotations

__all__ = ["BytesTranslator", "ResponseTranslator", "StringTranslator"]

import codecs
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from typing import BinaryIO

    from davexec.response import Response

T = TypeVar("T")

DEFAULT_CHARSET = "utf-8"


class ResponseTranslator(ABC, Generic[T]):
    r"""Pluggable decoder turning a response body into a value."""

    @abstractmethod
    def decode(self, response: Response[T], stream: BinaryIO) -> T:
        """Decode a non-empty body.

        Args:
            response: The response the body belongs to.
            stream: The decoded body bytes.

        Returns:
            The decoded value.
        """

    @abstractmethod
    def decode_empty_body(self, response: Response[T]) -> T:
        """Return the value of a response without body bytes."""


class BytesTranslator(ResponseTranslator[bytes]):
    r"""Return the body as ``bytes``.

    Example:
        ```pycon
        >>> import io
        >>> from davexec.response import Response
        >>> from davexec.translators import BytesTranslator
        >>> BytesTranslator().decode(Response(200), io.BytesIO(b"abc"))
        b'abc'
        >>> BytesTranslator().decode_empty_body(Response(204))
        b''

        ```
    """

    def decode(self, response: Response[bytes], stream: BinaryIO) -> bytes:  # noqa: ARG002
        return stream.read()

    def decode_empty_body(self, response: Response[bytes]) -> bytes:  # noqa: ARG002
        return b""


class StringTranslator(ResponseTranslator[str]):
    r"""Return the body as ``str``.

    The charset comes from the ``charset=`` parameter of the
    ``Content-Type`` header when it names a known codec, otherwise the
    default charset is used.

    Args:
        default_charset: The charset used when the response names none.

    Example:
        ```pycon
        >>> import io
        >>> from davexec.response import Response
        >>> from davexec.translators import StringTranslator
        >>> response = Response(200, headers={"Content-Type": ["text/plain; charset=latin-1"]})
        >>> StringTranslator().decode(response, io.BytesIO("é".encode("latin-1")))
        'é'

        ```
    """

    def __init__(self, default_charset: str = DEFAULT_CHARSET) -> None:
        self.default_charset = default_charset

    def decode(self, response: Response[str], stream: BinaryIO) -> str:
        return stream.read().decode(self.charset_of(response))

    def decode_empty_body(self, response: Response[str]) -> str:  # noqa: ARG002
        return ""

    def charset_of(self, response: Response[Any]) -> str:
        """Return the charset declared by the response, or the default."""
        content_type = response.content_type
        if content_type is None:
            return self.default_charset
        for part in "".join(content_type.split()).split(";"):
            if part.lower().startswith("charset="):
                charset = part[len("charset=") :].strip("\"'")
                try:
                    codecs.lookup(charset)
                except LookupError:
                    continue
                return charset
        return self.default_charset
