"""Logging utilities with rich console output.

Usage:
    from quotebook.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Importing clippings...")
"""

import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

# Shared console so log lines and CLI output interleave cleanly
console = Console(stderr=True)


def _rich_handler(show_time: bool = False, show_path: bool = False) -> RichHandler:
    handler = RichHandler(
        console=console,
        show_time=show_time,
        show_path=show_path,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%X]"))
    return handler


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a logger for a module.

    Args:
        name: Logger name (typically __name__ of the module)
        level: Logging level. If None, the level is inherited from the
               ``quotebook`` root logger configured by setup_logging().

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level.upper())
    # Propagate so pytest caplog and setup_logging() handlers see records
    logger.propagate = True
    return logger


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Configure the ``quotebook`` logger hierarchy.

    Called once at the application entry point (CLI).

    Args:
        level: Logging level; QUOTEBOOK_LOG_LEVEL overrides when level is None
        log_file: Optional file path to also log to a file
    """
    if level is None:
        level = os.getenv("QUOTEBOOK_LOG_LEVEL", "INFO")

    root = logging.getLogger("quotebook")
    root.setLevel(level.upper())
    root.handlers.clear()
    root.addHandler(_rich_handler())

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root.addHandler(file_handler)
