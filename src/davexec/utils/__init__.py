r"""Utility functions for request execution.

This package provides query string encoding, HTTP date handling,
Retry-After parsing, wait time calculation and structured logging.
"""

from __future__ import annotations

__all__ = [
    "append_query",
    "calculate_sleep_time",
    "encode_params",
    "format_header_value",
    "format_http_date",
    "parse_http_date",
    "parse_retry_after",
]

from davexec.utils.dates import format_header_value, format_http_date, parse_http_date
from davexec.utils.query import append_query, encode_params
from davexec.utils.retry_after import parse_retry_after
from davexec.utils.sleep import calculate_sleep_time
