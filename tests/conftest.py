"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any app import so settings are built
with test values. The database fakes live in ``_fakes``.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("DB_POOL_CAPACITY", "5")
os.environ.setdefault("DB_POOL_ACQUIRE_TIMEOUT_SECONDS", "0.5")
os.environ.setdefault("DB_POOL_DRAIN_TIMEOUT_SECONDS", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_ACCESS_LOG", "false")

import pytest

from _fakes import FakeConnectionFactory


@pytest.fixture
def factory() -> FakeConnectionFactory:
    """Factory returning the sample user rows."""
    return FakeConnectionFactory()
