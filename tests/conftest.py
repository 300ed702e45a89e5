"""
Pytest fixtures for Migration Manager testing.

This module provides:
1. Test environment variables (set before application modules are imported)
2. In-memory storage backing the migration services
3. Settings and orchestrator fixtures
"""

import os

import pytest

from tests.fixtures.auth import TEST_SECRET_KEY

# Settings are read lazily, but main.py configures logging at import time
os.environ.setdefault("MIGRATION_ENVIRONMENT", "testing")
os.environ.setdefault("MIGRATION_SECRET_KEY", TEST_SECRET_KEY)

from migration_manager.config import Settings, get_settings  # noqa: E402
from migration_manager.services.migration import MigrationOrchestrator  # noqa: E402
from tests.helpers.memory_storage import MemoryStorage  # noqa: E402

pytest_plugins = [
    "tests.fixtures.auth",
]


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Each test sees settings built from the current environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(platform_version="1.2.3")


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def orchestrator(storage, settings) -> MigrationOrchestrator:
    return MigrationOrchestrator(storage, settings=settings)
