"""Tests for logging module."""

import logging

from walink.config import Config
from walink.logging import setup_logging, short_id


class TestSetupLogging:
    """Test logging setup."""

    def test_setup_logging_returns_logger(self):
        """Setup returns the walink logger."""
        logger = setup_logging(Config())

        assert isinstance(logger, logging.Logger)
        assert logger.name == "walink"
        assert logger.propagate is False

    def test_setup_logging_is_idempotent(self):
        """Second call returns the same logger without adding handlers."""
        first = setup_logging(Config())
        handler_count = len(first.handlers)
        second = setup_logging(Config())

        assert second is first
        assert len(second.handlers) == handler_count

    def test_setup_logging_creates_log_file(self, tmp_path):
        """Log file (and its directory) is created."""
        log_file = tmp_path / "subdir" / "walink.log"
        setup_logging(Config(log_file=str(log_file)))
        logging.getLogger("walink.pairing.controller").info("child message")

        assert log_file.exists()
        content = log_file.read_text()
        assert "child message" in content
        assert "[INFO] walink.pairing.controller:" in content

    def test_log_levels_respected(self, tmp_path):
        """Only logs at configured level and above."""
        log_file = tmp_path / "test.log"
        logger = setup_logging(Config(log_file=str(log_file), log_level="WARNING"))
        logger.info("info message")
        logger.warning("warning message")

        content = log_file.read_text()
        assert "info message" not in content
        assert "warning message" in content

    def test_level_override(self, tmp_path):
        """Explicit level beats config.log_level."""
        logger = setup_logging(Config(log_level="WARNING"), level="DEBUG")
        assert logger.level == logging.DEBUG

    def test_quiets_aiohttp_access(self):
        """aiohttp access logs are raised to WARNING outside DEBUG."""
        setup_logging(Config(log_level="INFO"))
        assert logging.getLogger("aiohttp.access").level == logging.WARNING


class TestShortId:
    """Tests for session id shortening."""

    def test_short_id(self):
        """Keeps the first 8 characters."""
        assert short_id("0123456789abcdef") == "01234567..."
