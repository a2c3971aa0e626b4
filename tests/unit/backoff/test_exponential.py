r"""Unit tests for ExponentialBackoff strategy."""

from __future__ import annotations

import pytest

from davexec.backoff.exponential import ExponentialBackoff


def test_exponential_backoff_basic() -> None:
    """Test basic exponential backoff calculation."""
    backoff = ExponentialBackoff(base_delay=0.5)
    assert backoff.calculate(0) == 0.5  # 0.5 * 2^0
    assert backoff.calculate(1) == 1.0  # 0.5 * 2^1
    assert backoff.calculate(2) == 2.0  # 0.5 * 2^2
    assert backoff.calculate(3) == 4.0  # 0.5 * 2^3


def test_exponential_backoff_default_values() -> None:
    """Test that the default unit is one second."""
    backoff = ExponentialBackoff()
    assert backoff.base_delay == 1.0
    assert backoff.max_delay is None
    assert [backoff.calculate(attempt) for attempt in range(10)] == [
        1.0,
        2.0,
        4.0,
        8.0,
        16.0,
        32.0,
        64.0,
        128.0,
        256.0,
        512.0,
    ]


def test_exponential_backoff_with_max_delay() -> None:
    """Test exponential backoff with max_delay cap."""
    backoff = ExponentialBackoff(base_delay=1.0, max_delay=5.0)
    assert backoff.calculate(2) == 4.0
    assert backoff.calculate(3) == 5.0  # Would be 8.0, but capped
    assert backoff.calculate(10) == 5.0


def test_exponential_backoff_invalid_base_delay() -> None:
    """Test that a negative base delay is rejected."""
    with pytest.raises(ValueError, match=r"base_delay must be non-negative"):
        ExponentialBackoff(base_delay=-1.0)


@pytest.mark.parametrize("max_delay", [0, -5.0])
def test_exponential_backoff_invalid_max_delay(max_delay: float) -> None:
    with pytest.raises(ValueError, match=r"max_delay must be positive"):
        ExponentialBackoff(base_delay=1.0, max_delay=max_delay)


def test_exponential_backoff_zero_base_delay() -> None:
    """Test that a zero base delay always yields zero."""
    assert ExponentialBackoff(base_delay=0.0).calculate(5) == 0.0


def test_exponential_backoff_repr() -> None:
    assert repr(ExponentialBackoff()) == "ExponentialBackoff(base_delay=1.0, max_delay=None)"
