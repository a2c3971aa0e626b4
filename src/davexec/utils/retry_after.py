r"""Retry-After header parsing utilities.

This module provides functions for parsing the Retry-After header value
from HTTP responses according to RFC 7231.
"""

from __future__ import annotations

__all__ = ["parse_retry_after"]

import logging
from contextlib import suppress
from datetime import datetime, timezone

from davexec.utils.dates import parse_http_date

logger: logging.Logger = logging.getLogger(__name__)


def parse_retry_after(retry_after_header: str | None) -> float | None:
    """Parse the Retry-After header value of a response.

    The header is either a number of seconds (e.g. ``"120"``) or an
    HTTP-date (e.g. ``"Wed, 21 Oct 2015 07:28:00 GMT"``).

    Args:
        retry_after_header: The value of the Retry-After header, or
            ``None`` if the header is not present.

    Returns:
        The number of seconds to wait, or ``None`` if the header is absent
        or cannot be parsed. Dates in the past give ``0.0``.

    Example:
        ```pycon
        >>> from davexec.utils.retry_after import parse_retry_after
        >>> parse_retry_after("120")
        120.0
        >>> parse_retry_after(None) is None
        True
        >>> parse_retry_after("invalid") is None
        True

        ```
    """
    if retry_after_header is None:
        return None

    with suppress(ValueError):
        return max(0.0, float(retry_after_header))

    retry_date = parse_http_date(retry_after_header)
    if retry_date is None:
        logger.debug(f"Failed to parse Retry-After header: {retry_after_header!r}")
        return None
    delta_seconds = (retry_date - datetime.now(timezone.utc)).total_seconds()
    return max(0.0, delta_seconds)
