r"""HTTP date formatting and parsing (RFC 1123, always UTC)."""

from __future__ import annotations

__all__ = ["format_header_value", "format_http_date", "parse_http_date"]

import logging
from datetime import date, datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Any

logger: logging.Logger = logging.getLogger(__name__)


def format_http_date(value: datetime | date | float) -> str:
    """Format a point in time as an RFC 1123 date in UTC.

    Args:
        value: A ``datetime`` (naive values are taken as UTC), a ``date``
            (midnight UTC) or a POSIX timestamp in seconds.

    Returns:
        The formatted date, e.g. ``'Sun, 06 Nov 1994 08:49:37 GMT'``.

    Example:
        ```pycon
        >>> from datetime import datetime, timezone
        >>> from davexec.utils.dates import format_http_date
        >>> format_http_date(datetime(1994, 11, 6, 8, 49, 37, tzinfo=timezone.utc))
        'Sun, 06 Nov 1994 08:49:37 GMT'
        >>> format_http_date(0)
        'Thu, 01 Jan 1970 00:00:00 GMT'

        ```
    """
    if isinstance(value, datetime):
        moment = value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    else:
        moment = datetime.fromtimestamp(value, tz=timezone.utc)
    return format_datetime(moment.astimezone(timezone.utc), usegmt=True)


def format_header_value(value: Any) -> str:
    """Convert a header value to its wire form.

    Dates are formatted as RFC 1123 in UTC, every other value with
    ``str()``.

    Example:
        ```pycon
        >>> from datetime import date
        >>> from davexec.utils.dates import format_header_value
        >>> format_header_value(42)
        '42'
        >>> format_header_value(date(2020, 1, 2))
        'Thu, 02 Jan 2020 00:00:00 GMT'

        ```
    """
    if isinstance(value, (datetime, date)):
        return format_http_date(value)
    return str(value)


def parse_http_date(value: str | None) -> datetime | None:
    """Parse an HTTP date header value.

    Args:
        value: The header value, or ``None`` if the header is absent.

    Returns:
        A timezone-aware ``datetime``, or ``None`` if the value is absent
        or cannot be parsed.

    Example:
        ```pycon
        >>> from davexec.utils.dates import parse_http_date
        >>> parse_http_date("Sun, 06 Nov 1994 08:49:37 GMT").year
        1994
        >>> parse_http_date("not a date") is None
        True

        ```
    """
    if value is None:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (ValueError, TypeError, OverflowError):
        logger.debug(f"Failed to parse HTTP date: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
