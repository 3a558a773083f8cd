"""
Pytest configuration and fixtures for ironman ranking tests.
"""

import os
import logging

import pytest
from hypothesis import settings, Verbosity, HealthCheck

# Configure Hypothesis for faster test runs
settings.register_profile(
    "fast", max_examples=25, deadline=None, verbosity=Verbosity.quiet,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture]
)
settings.register_profile(
    "thorough", max_examples=200, deadline=None, verbosity=Verbosity.normal,
    suppress_health_check=[HealthCheck.function_scoped_fixture]
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "fast"))


@pytest.fixture(autouse=True)
def no_ironman_env(monkeypatch):
    """Keep the developer's IRONMAN_* environment out of tests."""
    for key in list(os.environ):
        if key.startswith("IRONMAN_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Run a test inside an empty directory so no stray config.json or .env is read."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def pytest_configure(config):
    """Configure pytest with custom settings."""
    logging.getLogger("ironman_ranking").setLevel(logging.WARNING)
    logging.getLogger("hypothesis").setLevel(logging.WARNING)


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers."""
    for item in items:
        if "properties" in item.path.name:
            item.add_marker(pytest.mark.property)

        if "integration" in item.path.name:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
