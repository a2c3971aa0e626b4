r"""Shared test helpers for request execution tests.

This module contains common test infrastructure used across multiple
test files: a recording handler for ``httpx.MockTransport`` and body
stream providers tracking their lifecycle.
"""

from __future__ import annotations

__all__ = [
    "FailingStream",
    "RecordingHandler",
    "TrackingStreamProvider",
    "make_config",
]

import io
from typing import TYPE_CHECKING, Any, BinaryIO

import httpx

from davexec.body import BodyStreamProvider
from davexec.core.config import ClientConfig

if TYPE_CHECKING:
    from collections.abc import Callable


class RecordingHandler:
    r"""Handler for ``httpx.MockTransport`` recording every request.

    Each call returns the next item of ``responses``; the last item is
    repeated once the list is exhausted. An item may be an
    ``httpx.Response``, an exception instance (raised) or a callable
    receiving the request.
    """

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses) or [httpx.Response(200)]
        self.requests: list[httpx.Request] = []
        self.bodies: list[bytes] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.bodies.append(request.content)
        index = min(len(self.requests), len(self.responses)) - 1
        item = self.responses[index]
        if isinstance(item, BaseException):
            raise item
        if callable(item) and not isinstance(item, httpx.Response):
            return item(request)
        return item

    @property
    def call_count(self) -> int:
        return len(self.requests)


def make_config(
    handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any
) -> ClientConfig:
    """Create a ``ClientConfig`` sending every request to ``handler``."""
    return ClientConfig(transport=httpx.MockTransport(handler), **kwargs)


class FailingStream(io.RawIOBase):
    r"""Readable stream raising ``OSError`` after ``fail_after`` bytes."""

    def __init__(self, data: bytes, fail_after: int) -> None:
        super().__init__()
        self._data = data
        self._position = 0
        self._fail_after = fail_after

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        if self._position >= self._fail_after:
            msg = "disk read failed"
            raise OSError(msg)
        if size < 0:
            size = len(self._data)
        chunk = self._data[self._position : self._position + size]
        self._position += len(chunk)
        return chunk


class TrackingStreamProvider(BodyStreamProvider):
    r"""Body provider counting ``create_stream`` and ``destroy_stream``
    calls.

    Args:
        data: The body content.
        size: The reported size. ``None`` reports ``len(data)``.
        fail_after: If set, streams raise ``OSError`` once this many
            bytes were read.
        repeatable: Whether the body can be produced more than once.
    """

    def __init__(
        self,
        data: bytes = b"payload",
        size: int | None = None,
        fail_after: int | None = None,
        repeatable: bool = True,
    ) -> None:
        self.data = data
        self.size = len(data) if size is None else size
        self.fail_after = fail_after
        self.repeatable = repeatable
        self.created: list[BinaryIO] = []
        self.destroyed: list[BinaryIO] = []

    def create_stream(self) -> BinaryIO:
        if self.fail_after is None:
            stream: Any = io.BytesIO(self.data)
        else:
            stream = FailingStream(self.data, self.fail_after)
        self.created.append(stream)
        return stream

    def payload_size(self, stream: BinaryIO) -> int:  # noqa: ARG002
        return self.size

    def destroy_stream(self, stream: BinaryIO) -> None:
        self.destroyed.append(stream)
        super().destroy_stream(stream)
