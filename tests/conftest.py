from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import Mock, patch

import pytest

from davexec.attempt import AttemptExecutor
from davexec.utils.structured_logging import clear_correlation_id

if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture
def mock_sleep() -> Generator[Mock, None, None]:
    """Patch time.sleep to make tests run faster."""
    with patch("time.sleep", return_value=None) as mock:
        yield mock


@pytest.fixture
def mock_attempt_executor() -> Mock:
    """Create a mock AttemptExecutor for testing the retry loop."""
    return Mock(spec=AttemptExecutor)


@pytest.fixture
def mock_callback() -> Mock:
    """Create a mock ResponseCallback for testing strategies.

    Returns:
        A Mock object with ``success`` and ``failure`` methods.
    """
    return Mock(spec=["success", "failure"])


@pytest.fixture(autouse=True)
def _reset_correlation_id() -> Generator[None, None, None]:
    clear_correlation_id()
    yield
    clear_correlation_id()
