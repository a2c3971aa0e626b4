r"""Backoff strategies computing the wait between two attempts."""

from __future__ import annotations

__all__ = ["BaseBackoffStrategy", "ConstantBackoff", "ExponentialBackoff"]

from davexec.backoff.base import BaseBackoffStrategy
from davexec.backoff.constant import ConstantBackoff
from davexec.backoff.exponential import ExponentialBackoff
