"""Logging configuration for walink."""

import logging
from pathlib import Path

from walink.config import Config

# Module-level logger cache
_logger: logging.Logger | None = None

# Third-party loggers that are only interesting when debugging
_CHATTY_LOGGERS = ("aiohttp.access", "aiohttp.client", "aiohttp.websocket")


def short_id(session_id: str) -> str:
    """Shorten a session id for log lines."""
    return f"{session_id[:8]}..."


def setup_logging(config: Config, level: str | None = None) -> logging.Logger:
    """Set up the walink logger.

    Args:
        config: Configuration object with log settings.
        level: Optional level overriding config.log_level (CLI --verbose).

    Returns:
        Configured logger instance.
    """
    global _logger

    if _logger is not None:
        return _logger

    level_name = (level or config.log_level).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger("walink")
    logger.setLevel(log_level)
    logger.handlers.clear()

    # 2025-01-27 10:30:45 [INFO] walink.pairing.controller: message
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    formatter.datefmt = "%Y-%m-%d %H:%M:%S"

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    logger.propagate = False

    if log_level > logging.DEBUG:
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    _logger = logger
    return logger


def reset_logging() -> None:
    """Reset logging state. Used for testing."""
    global _logger
    if _logger is not None:
        for handler in _logger.handlers:
            handler.close()
        _logger.handlers.clear()
        _logger = None
