"""
Root pytest configuration.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest

# Register auditchain testing fixtures for all tests
pytest_plugins = ("auditchain.testing.fixtures",)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "critical: Tests that must never fail - core chain integrity",
    )
    config.addinivalue_line(
        "markers",
        "security: Security-critical tests (tamper detection, keys, signatures)",
    )
    config.addinivalue_line(
        "markers",
        "integration: Tests exercising a real storage backend",
    )
    config.addinivalue_line(
        "markers",
        "property: Property-based tests (may be slow)",
    )


@pytest.fixture(autouse=True)
def reset_diagnostics_cache() -> Generator[None, None, None]:
    """Reset the diagnostics module cache before each test.

    The diagnostics module caches the ``internal_logging_enabled`` setting at
    first access. Resetting it keeps tests from inheriting cached state.
    """
    import auditchain.core.diagnostics as diag

    diag._internal_logging_enabled = None
    yield
    diag._internal_logging_enabled = None
