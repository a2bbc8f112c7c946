"""Shared fixtures for the campus-events test suite."""

import pytest
from django.core.cache import caches


@pytest.fixture(autouse=True)
def _clear_cache():
    """Start every test with empty rate-limit counters."""
    caches["default"].clear()
    yield
    caches["default"].clear()
