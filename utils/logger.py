"""Logging utilities for the pipeline."""
import logging
from typing import Optional

from rich.logging import RichHandler
from rich.console import Console

import config

console = Console(stderr=True)

# Third-party loggers that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "anthropic")

_pipeline_loggers = set()


def _resolve_level(level: Optional[int]) -> int:
    if level is not None:
        return level
    resolved = logging.getLevelName(config.LOG_LEVEL.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """Set up a logger with rich formatting.

    Args:
        name: Logger name (usually the module's __name__)
        level: Logging level; defaults to LOG_LEVEL from the environment

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))
    if not logger.handlers:
        handler = RichHandler(
            rich_tracebacks=True,
            console=console,
            show_time=True,
            show_path=False,
            markup=False
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    _pipeline_loggers.add(name)
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger


def set_log_level(level: int) -> None:
    """Change the level of every logger created through setup_logger."""
    for name in _pipeline_loggers:
        logging.getLogger(name).setLevel(level)
