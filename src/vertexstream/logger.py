"""
vertexstream logging

Provides one logging entry point for the package:
1. a logger supplied by the caller through ``set_logger`` wins
2. otherwise loguru, with a stderr sink for this package's records
3. level is read from the VERTEXSTREAM_LOG_LEVEL environment variable

Package modules log through ``logger``, which resolves the active logger on
every call, so ``set_logger`` takes effect for modules imported earlier.
The loguru sink is added on the first log call; sinks the host application
configured are left in place.

Environment:
    VERTEXSTREAM_LOG_LEVEL: DEBUG/INFO/WARNING/ERROR/CRITICAL, default INFO

Example:
    from vertexstream.logger import logger
    logger.info("Hello")

    # plug in your own logger
    import logging
    from vertexstream.logger import set_logger
    set_logger(logging.getLogger("my_app"))
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

from loguru import logger as loguru_logger

# Anything exposing debug/info/warning/error/exception
LoggerProtocol = logging.Logger | Any

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_user_logger: LoggerProtocol | None = None

# loguru handler id of the sink added by _init_default_logger
_default_handler_id: int | None = None


def _get_log_level_from_env() -> str:
    """
    Read the log level from VERTEXSTREAM_LOG_LEVEL.

    Returns:
        Upper-case level name, INFO when unset or invalid.
    """
    level = os.getenv("VERTEXSTREAM_LOG_LEVEL", "INFO").upper()
    if level not in LOG_LEVELS:
        print(f"Warning: Invalid VERTEXSTREAM_LOG_LEVEL '{level}', using INFO", file=sys.stderr)
        return "INFO"
    return level


def set_logger(logger: LoggerProtocol) -> None:
    """
    Install a process-wide logger.

    Args:
        logger: any object with the standard logging methods
                (debug, info, warning, error, exception)

    Example:
        >>> import logging
        >>> my_logger = logging.getLogger("my_app")
        >>> my_logger.setLevel(logging.INFO)
        >>> set_logger(my_logger)
    """
    global _user_logger
    _user_logger = logger


def get_logger() -> LoggerProtocol:
    """
    Return the logger that is active right now.

    The logger installed with ``set_logger`` takes precedence; otherwise the
    loguru sink is set up once and loguru's logger is returned.
    """
    if _user_logger is not None:
        return _user_logger

    if _default_handler_id is None:
        _init_default_logger()
    return loguru_logger


def _init_default_logger() -> None:
    global _default_handler_id

    _default_handler_id = loguru_logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
               "<level>{level: <8}</level> | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
               "<level>{message}</level>",
        level=_get_log_level_from_env(),
        filter="vertexstream",
        colorize=True,
    )


def reset_logger() -> None:
    """
    Drop the user logger and remove the default sink (mainly for tests).
    """
    global _user_logger, _default_handler_id
    _user_logger = None
    if _default_handler_id is not None:
        loguru_logger.remove(_default_handler_id)
        _default_handler_id = None


class _ActiveLogger:
    """Forwards each logging call to whatever ``get_logger`` returns at call time."""

    def __getattr__(self, attr: str) -> Any:
        return getattr(get_logger(), attr)


logger = _ActiveLogger()
