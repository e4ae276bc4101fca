"""
Test Configuration Module
"""

import pytest

from sse_gateway.config import get_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings are cached per process; environment patches in a test must not leak."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
