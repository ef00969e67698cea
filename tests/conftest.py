"""Shared test fixtures."""

from __future__ import annotations

import pytest

from shelter_giving.api.rate_limit import reset_rate_limits


@pytest.fixture(autouse=True)
def _clear_rate_limits() -> None:
    """Rate limit counters are module level and would leak between tests."""
    reset_rate_limits()
