r"""Response of one attempt.

A ``Response`` is created once per attempt from the status line and
headers of the server response. Only its ``body`` is assigned afterwards,
once the response translator decoded it.
"""

from __future__ import annotations

__all__ = ["Response"]

from contextlib import suppress
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from davexec.exceptions import EnsureSuccessError
from davexec.utils.dates import parse_http_date

if TYPE_CHECKING:
    from datetime import datetime

    import httpx

    from davexec.request import RequestSpec

T = TypeVar("T")


@dataclass
class Response(Generic[T]):
    r"""Status, headers and decoded body of a server response.

    ``headers`` maps each header name, in the case sent by the server, to
    the ordered list of its values. Lookups through ``header_field`` are
    case-insensitive and return the last value.

    Example:
        ```pycon
        >>> from davexec.response import Response
        >>> response = Response(
        ...     status_code=200,
        ...     reason_phrase="OK",
        ...     headers={"X-Id": ["1", "2"]},
        ... )
        >>> response.is_success
        True
        >>> response.header_field("x-id")
        '2'

        ```
    """

    status_code: int
    reason_phrase: str = ""
    http_version: str = "HTTP/1.1"
    headers: dict[str, list[str]] = field(default_factory=dict)
    request: RequestSpec | None = field(default=None, repr=False)
    body: T | None = field(default=None, repr=False)

    @classmethod
    def from_httpx(cls, request: RequestSpec, response: httpx.Response) -> Response[Any]:
        r"""Create a response from the status and headers of an
        ``httpx`` response.

        The body of ``response`` is not read.
        """
        headers: dict[str, list[str]] = {}
        for raw_name, raw_value in response.headers.raw:
            name = raw_name.decode("latin-1")
            headers.setdefault(name, []).append(raw_value.decode("latin-1"))
        return cls(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            http_version=response.http_version,
            headers=headers,
            request=request,
        )

    @property
    def is_success(self) -> bool:
        r"""Whether the status code is in the 2xx range."""
        return 200 <= self.status_code < 300

    @property
    def status_line(self) -> str:
        return f"{self.http_version} {self.status_code} {self.reason_phrase}".rstrip()

    @property
    def content_type(self) -> str | None:
        return self.header_field("Content-Type")

    @property
    def content_encoding(self) -> str | None:
        return self.header_field("Content-Encoding")

    @property
    def date(self) -> datetime | None:
        return self.header_field_date("Date")

    @property
    def expiration(self) -> datetime | None:
        return self.header_field_date("Expires")

    @property
    def last_modified(self) -> datetime | None:
        return self.header_field_date("Last-Modified")

    def header_values(self, name: str) -> list[str]:
        """Return all values of a header, in order, ignoring name case."""
        lowered = name.lower()
        values: list[str] = []
        for header_name, header_values in self.headers.items():
            if header_name.lower() == lowered:
                values.extend(header_values)
        return values

    def header_field(self, name: str) -> str | None:
        """Return the last value of a header, or ``None`` if absent."""
        values = self.header_values(name)
        if not values:
            return None
        return values[-1]

    def header_field_int(self, name: str, default: int) -> int:
        """Return a header value as an integer, or ``default`` if the
        header is absent or not an integer."""
        value = self.header_field(name)
        if value is None:
            return default
        with suppress(ValueError):
            return int(value.strip())
        return default

    def header_field_date(
        self, name: str, default: datetime | None = None
    ) -> datetime | None:
        """Return a header value as an aware ``datetime``, or ``default``
        if the header is absent or not an HTTP date."""
        parsed = parse_http_date(self.header_field(name))
        return default if parsed is None else parsed

    def ensure_success(self) -> None:
        """Raise if the status code is not in the 2xx range.

        Raises:
            EnsureSuccessError: If the response is not successful. The
                response is attached to the error.
        """
        if not self.is_success:
            msg = f"Request failed: {self.status_code} {self.reason_phrase}".rstrip()
            raise EnsureSuccessError(msg, response=self)
