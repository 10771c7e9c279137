"""
Tests for logging configuration.
"""

import logging

import pytest
import structlog

from src.core.logger import level_from_env, setup_logging


class TestLevelFromEnv:
    """Tests for level_from_env function."""

    @pytest.mark.parametrize(
        "value,expected",
        [("DEBUG", logging.DEBUG), ("info", logging.INFO), ("Warning", logging.WARNING)],
    )
    def test_known_levels(self, monkeypatch, value, expected):
        """Test level names are resolved case-insensitively."""
        monkeypatch.setenv("LOG_LEVEL", value)

        assert level_from_env() == expected

    def test_unset_uses_default(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        assert level_from_env(default=logging.ERROR) == logging.ERROR

    def test_unknown_uses_default(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "VERBOSE")

        assert level_from_env() == logging.DEBUG


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_configures_structlog(self):
        """Test structlog is wired to the standard library logger."""
        setup_logging(level=logging.INFO)

        config = structlog.get_config()
        assert config["logger_factory"].__class__ is structlog.stdlib.LoggerFactory
        assert config["wrapper_class"] is structlog.stdlib.BoundLogger

    def test_level_applied_on_reconfigure(self):
        """A later call changes the root level even though handlers already exist."""
        root = logging.getLogger()
        previous = root.level
        try:
            setup_logging(level=logging.WARNING)
            assert root.level == logging.WARNING

            setup_logging(level=logging.DEBUG)
            assert root.level == logging.DEBUG
        finally:
            root.setLevel(previous)
