"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets environment variables before settings are imported so no .env file
or external store is touched during tests.
"""

import os
from unittest.mock import Mock

import pytest

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("THROTTLE_DEFAULT_MAX", "3")
os.environ.setdefault("THROTTLE_DEFAULT_PERIOD_SECONDS", "60")

from node_throttle import monitor  # noqa: E402


@pytest.fixture
def clock() -> Mock:
    """Deterministic wall clock starting at t=1000s."""
    return Mock(return_value=1000.0)


@pytest.fixture(autouse=True)
def _fresh_monitor_engine():
    monitor.reset_engine()
    yield
    monitor.reset_engine()
