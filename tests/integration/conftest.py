"""
Auto-mark all tests in this directory as integration tests.

These run against a live cluster with the operator installed and are
skipped unless AAO_ITEST_LIVE=1.

Run ONLY integration tests:
    AAO_ITEST_LIVE=1 pytest tests/integration/ -m integration

Run ONLY unit tests (default):
    pytest -m "not integration"
"""

import pytest


def pytest_collection_modifyitems(items):
    """Auto-apply the 'integration' marker to every test in this directory."""
    for item in items:
        if "/integration/" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
