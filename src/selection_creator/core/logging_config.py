"""Logging setup shared by the CLI, the pipeline and the item executors."""

import os
import sys
import logging
from typing import Optional, TextIO


DEFAULT_LOGGER_NAME = "selection-creator"

LOG_FORMATS = {
    "structured": (
        "%(asctime)s | %(name)s | %(levelname)-8s | "
        "%(filename)s:%(lineno)d | %(funcName)s() | %(message)s"
    ),
    "simple": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

# Stream for selection-creator handlers; None means the current sys.stdout
_log_stream: Optional[TextIO] = None


def resolve_level(level: Optional[str] = None) -> int:
    """Explicit level, else LOG_LEVEL, else INFO; unknown names fall back to INFO."""
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: Optional[str] = None,
    format_type: str = "structured",
) -> logging.Logger:
    """
    Configure ``name`` with a single stream handler and return it.

    The handler writes to stdout unless route_logs_to() picked another stream.

    Args:
        name: Logger name
        level: Level override (defaults to LOG_LEVEL, then INFO)
        format_type: "structured" or "simple"; LOG_FORMAT wins when set

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(resolve_level(level))

    if not logger.handlers:
        format_name = os.getenv("LOG_FORMAT", format_type).lower()
        handler = logging.StreamHandler(_log_stream or sys.stdout)
        handler.setFormatter(
            logging.Formatter(
                LOG_FORMATS.get(format_name, LOG_FORMATS["simple"]),
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """Return ``name``, configuring it on first use only so a raised level sticks."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    return setup_logger(name)


def route_logs_to(stream: Optional[TextIO] = None) -> None:
    """Point every selection-creator handler, current and future, at ``stream``."""
    global _log_stream
    _log_stream = stream
    for name, candidate in list(logging.Logger.manager.loggerDict.items()):
        if not name.startswith(DEFAULT_LOGGER_NAME) or not isinstance(candidate, logging.Logger):
            continue
        for handler in candidate.handlers:
            if isinstance(handler, logging.StreamHandler):
                handler.setStream(stream or sys.stdout)


def enable_debug_logging(*names: str) -> None:
    """Lower the named loggers (and the root logger) to DEBUG."""
    for name in names or (DEFAULT_LOGGER_NAME,):
        get_logger(name).setLevel(logging.DEBUG)
    logging.getLogger().setLevel(logging.DEBUG)


logger = setup_logger()
