"""Tests for logging configuration."""

from collections.abc import Generator

import pytest
import structlog

from fieldaudit.config import Settings
from fieldaudit.core.logging import configure_logging


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Restore structlog's defaults after each test."""
    yield
    structlog.reset_defaults()


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_console_renderer_outside_production(self):
        """Test that development uses the console renderer."""
        configure_logging(Settings(_env_file=None, environment="development"))
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_json_renderer_in_production(self):
        """Test that production renders JSON."""
        configure_logging(Settings(_env_file=None, environment="production"))
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_level_filtering(self):
        """Test that the wrapper filters below the configured level."""
        configure_logging(Settings(_env_file=None, log_level="WARNING"))
        wrapper = structlog.get_config()["wrapper_class"]
        assert wrapper is structlog.make_filtering_bound_logger(30)
