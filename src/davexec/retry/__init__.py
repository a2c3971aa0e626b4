r"""Retry policy and retry loop."""

from __future__ import annotations

__all__ = ["DEFAULT_RETRY_POLICY", "RetryPolicy", "RetryingExecutor"]

from davexec.retry.executor import RetryingExecutor
from davexec.retry.policy import DEFAULT_RETRY_POLICY, RetryPolicy
