"""
Shared pytest configuration.
"""

import pytest
import structlog

from shared.logging import clear_context


@pytest.fixture(autouse=True)
def reset_logging():
    """Give every test default structlog settings and empty log context."""
    yield
    structlog.reset_defaults()
    clear_context()
