"""
Root conftest.py for all tests
Provides common fixtures and configuration
"""
import os
import sys

# Add project root to Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Force stub mode before any settings are created
os.environ["USE_STUBS"] = "true"
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("QUOTA_BACKEND", "memory")

import pytest  # noqa: E402

from core.config import get_settings  # noqa: E402

# Import all centralized fixtures
from tests.fixtures import *  # noqa: F401,F403,E402


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without external services")
    config.addinivalue_line("markers", "critical: tests guarding core invariants")


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Clear the settings cache before and after each test"""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
