"""
Pytest configuration and shared fixtures for nostrfeed tests.

Provides:
- In-memory relay sessions and event factories (``fixtures.relays``)
- Logging configured for debug output
"""

import logging

import pytest


pytest_plugins = ["fixtures.relays"]


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def configure_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)
