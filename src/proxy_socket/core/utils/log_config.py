"""Logging configuration for the proxy socket command line.

The library modules log through Loguru's shared ``logger`` without adding any
sinks. Importing this module installs the command line's sinks: a colored
console handler on stderr and a rotating file under the user's home.
"""

import sys
from pathlib import Path

from loguru import logger

LOG_DIR = Path.home() / ".proxy-socket" / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def configure_logging(level: str = "WARNING") -> None:
    """Replace all sinks with the console and file sinks.

    Args:
        level: Minimum level shown on the console; the file always gets DEBUG
    """
    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, backtrace=True, diagnose=False)
    logger.add(
        LOG_DIR / "proxy-socket.log",
        rotation="10 MB",
        retention="1 week",
        compression="zip",
        format=FILE_FORMAT,
        level="DEBUG",
        backtrace=True,
        diagnose=False,
    )


configure_logging()

__all__ = ["configure_logging", "logger", "LOG_DIR"]
