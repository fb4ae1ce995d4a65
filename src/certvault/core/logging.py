"""
Loguru configuration for the storage.

This module configures loguru with:
- The storage plugin name stamped on each log
- Configurable level and format from settings
- Redirection of standard library logs (httpx, httpcore) to loguru
"""

import logging
import sys
from typing import Any

from loguru import logger

from certvault.config import settings


def add_storage_plugin(record: dict[str, Any]) -> bool:
    """
    Adds the storage plugin name to the log record.

    Allows telling storage logs apart from the certificate manager's own
    logs when both share a sink.

    Args:
        record: Loguru record

    Returns:
        True to indicate that the filter passed
    """
    record["extra"].setdefault("storage_plugin", settings.logger_name)
    return True


def configure_logger(level: str | None = None) -> None:
    """
    Configures loguru with storage settings.

    This function:
    1. Removes default loguru handlers
    2. Adds handler to stderr with custom configuration
    3. Configures level, format, colorization, etc.
    4. Routes httpx and httpcore logs through loguru

    Args:
        level: Overrides settings.log_level when given
    """
    # Remove default configuration
    logger.remove()

    # Add configured handler
    logger.add(
        sink=sys.stderr,
        level=(level or settings.log_level).upper(),
        format=settings.log_format,
        filter=add_storage_plugin,
        colorize=True,
        serialize=False,
        backtrace=True,
        diagnose=False,
        enqueue=settings.logger_enqueue,
    )

    intercept_standard_logging()


class InterceptHandler(logging.Handler):
    """
    Handler to redirect standard logging logs to loguru.

    Captures logs from httpx and httpcore, which use standard logging, so
    request traces end up next to the storage logs.

    Usage:
        import logging
        from certvault.core.logging import InterceptHandler

        logging.getLogger("httpx").handlers = [InterceptHandler()]
    """

    def emit(self, record: logging.LogRecord) -> None:
        """
        Redirects a standard logging record to loguru.

        Args:
            record: logging.LogRecord record
        """
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        logger.opt(depth=6, exception=record.exc_info).log(level, record.getMessage())


def intercept_standard_logging(level: int = logging.INFO) -> None:
    """
    Configures redirection of standard logging to loguru.

    Intercepts logs from:
    - httpx (HTTP client)
    - httpcore (connection pool)

    Args:
        level: Minimum level forwarded from the standard loggers
    """
    for logger_name in ["httpx", "httpcore"]:
        logging_logger = logging.getLogger(logger_name)
        logging_logger.handlers = [InterceptHandler()]
        logging_logger.setLevel(level)
        logging_logger.propagate = False


# Configure logger when importing the module
configure_logger()


__all__ = ["logger", "InterceptHandler", "configure_logger", "intercept_standard_logging"]
