r"""Streaming request body providers.

A provider produces a fresh readable binary stream on demand. The engine
calls ``create_stream`` once per attempt, asks for the size of the
stream, copies it to the connection, and always calls ``destroy_stream``
exactly once for every stream it created, whether the transfer
succeeded or not.
"""

from __future__ import annotations

__all__ = ["BodyStreamProvider", "BytesStreamProvider", "FileStreamProvider"]

import io
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO

UNKNOWN_SIZE = -1


class BodyStreamProvider(ABC):
    """Capability producing the body of a streamed request.

    ``create_stream`` may be called again after ``destroy_stream`` when a
    failed attempt is retried. Providers that cannot produce the same
    content twice set ``repeatable`` to ``False``; such requests are
    never retried.
    """

    repeatable: bool = True

    @abstractmethod
    def create_stream(self) -> BinaryIO:
        """Create a new stream positioned at the start of the body."""

    @abstractmethod
    def payload_size(self, stream: BinaryIO) -> int:
        """Return the exact size in bytes of ``stream``, or -1 if unknown."""

    def destroy_stream(self, stream: BinaryIO) -> None:
        """Release a stream returned by ``create_stream``.

        The default implementation closes the stream.
        """
        stream.close()


class FileStreamProvider(BodyStreamProvider):
    r"""Stream the content of a file.

    Args:
        path: The path of the file to send.

    Example:
        ```pycon
        >>> from davexec.body import FileStreamProvider
        >>> provider = FileStreamProvider("upload.bin")
        >>> provider.path.name
        'upload.bin'

        ```
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(path={str(self.path)!r})"

    def create_stream(self) -> BinaryIO:
        return self.path.open("rb")

    def payload_size(self, stream: BinaryIO) -> int:  # noqa: ARG002
        return self.path.stat().st_size


class BytesStreamProvider(BodyStreamProvider):
    r"""Stream an in-memory buffer.

    Args:
        data: The body content.
        declare_size: Whether the size is reported. If ``False`` the
            body is sent with chunked transfer coding.

    Example:
        ```pycon
        >>> from davexec.body import BytesStreamProvider
        >>> provider = BytesStreamProvider(b"abc")
        >>> stream = provider.create_stream()
        >>> provider.payload_size(stream)
        3
        >>> provider.destroy_stream(stream)

        ```
    """

    def __init__(self, data: bytes, declare_size: bool = True) -> None:
        self.data = data
        self.declare_size = declare_size

    def create_stream(self) -> BinaryIO:
        return io.BytesIO(self.data)

    def payload_size(self, stream: BinaryIO) -> int:  # noqa: ARG002
        return len(self.data) if self.declare_size else UNKNOWN_SIZE
