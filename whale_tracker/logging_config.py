"""Logging configuration for the whale tracker server."""

import logging
import sys
from typing import Optional

# Default log format
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(log_level: str = "INFO", log_format: Optional[str] = None):
    """Configure global logging settings.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format string
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    if log_format is None:
        log_format = DEFAULT_LOG_FORMAT

    # Configure root logger
    logging.basicConfig(
        level=numeric_level,
        format=log_format,
        stream=sys.stdout
    )

    # Set third-party loggers to a higher level to reduce noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger
    """
    return logging.getLogger(name)


def format_context(**context) -> str:
    """Render keyword context as ``key=value`` pairs."""
    return ", ".join(f"{k}={v!r}" for k, v in context.items())


def log_with_context(logger: logging.Logger,
                     level: str,
                     message: str,
                     **context) -> None:
    """Log a message with additional context information.

    Args:
        logger: Logger instance
        level: Log level (debug, info, warning, error, critical)
        message: Log message
        context: Additional context information as keyword arguments
    """
    log_method = getattr(logger, level.lower(), logger.info)
    if context:
        log_method(f"{message} [{format_context(**context)}]")
    else:
        log_method(message)
