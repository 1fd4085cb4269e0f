"""Logging configuration for the tunnel.

This module provides centralized logging configuration using Loguru.
It sets up logging to both console and file with proper formatting
and log rotation. Only the command-line host imports it; library users keep
their own loguru sinks.
"""

import sys
from pathlib import Path

from loguru import logger

# Create logs directory in user's home directory
LOG_DIR = Path.home() / ".tcp-tunnel" / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def configure_logging(debug: bool = False) -> None:
    """Install the console and file sinks.

    Args:
        debug: Log DEBUG messages to the console as well
    """
    logger.remove()

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level="DEBUG" if debug else "INFO",
        backtrace=True,
        diagnose=debug,
    )

    logger.add(
        LOG_DIR / "tunnel.log",
        rotation="10 MB",
        retention="1 week",
        compression="zip",
        format=FILE_FORMAT,
        level="DEBUG",
        backtrace=True,
        diagnose=False,
        enqueue=True,
    )


configure_logging()

__all__ = ["configure_logging", "logger", "LOG_DIR"]
