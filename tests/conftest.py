"""
Test configuration and fixtures for the bzred project.

This file is the root pytest configuration file that sets up pytest
markers and imports fixtures from the fixtures modules to make them
available to all tests.
"""

import pytest

# Import store fixtures
from tests.fixtures.stores import (
    app_config,
    bugzilla_config,
    bugzilla_store,
    enumeration_config,
    migration_config,
    redmine_config,
    redmine_store,
)

# Import dataset fixtures
from tests.fixtures.datasets import bugzilla_dataset


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark a test as a unit test")
    config.addinivalue_line("markers", "integration: mark a test as an integration test")
    config.addinivalue_line("markers", "db: mark a test that requires database access")
    config.addinivalue_line("markers", "cli: mark a test that tests CLI functionality")
