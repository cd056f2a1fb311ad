"""Pytest configuration for shellfleet tests."""

import logging

import pytest

from shellfleet.core.activity import activity_history

logging.getLogger("shellfleet").handlers.clear()


def pytest_collection_modifyitems(config, items):
    """Set per-marker timeouts: integration=5s, unit=1s. Explicit timeout marks win."""
    for item in items:
        if item.get_closest_marker("timeout") is not None:
            continue
        if "integration" in item.keywords:
            item.add_marker(pytest.mark.timeout(5))
        elif "unit" in item.keywords:
            item.add_marker(pytest.mark.timeout(1))


@pytest.fixture(autouse=True)
def _reset_activity_history():
    """The process-wide history must not leak records between tests."""
    activity_history.clear()
    yield
    activity_history.clear()
