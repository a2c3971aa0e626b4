r"""Core settings and validation shared by the execution engine."""

from __future__ import annotations

__all__ = [
    "BUFFER_SIZE",
    "DEFAULT_CONNECT_TIMEOUT",
    "DEFAULT_READ_TIMEOUT",
    "MAX_FIXED_LENGTH",
    "MIN_COMPRESSED_ADVANTAGE",
    "RETRY_STATUS_CODES",
    "ClientConfig",
    "validate_retry_count",
    "validate_timeout",
    "validate_workers",
]

from davexec.core.config import (
    BUFFER_SIZE,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_READ_TIMEOUT,
    MAX_FIXED_LENGTH,
    MIN_COMPRESSED_ADVANTAGE,
    RETRY_STATUS_CODES,
    ClientConfig,
)
from davexec.core.validation import validate_retry_count, validate_timeout, validate_workers
