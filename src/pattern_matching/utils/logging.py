"""
Logging Utilities

This module sets up logging for the project. Every module creates its own
logger with `setup_logger(__name__)`; scripts call `configure_package_logging`
once the configuration is known to apply the configured level and log file
to all package loggers created so far.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER_PREFIX = "pattern_matching"

_CONSOLE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
_FILE_FORMAT = '%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s'
_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _file_handler(log_file: str, level: int) -> logging.FileHandler:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(log_path)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
    return handler


def setup_logger(name: str,
                 level: int = logging.INFO,
                 log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up a logger with consistent formatting.

    Args:
        name: Logger name (usually __name__)
        level: Logging level (default: logging.INFO)
        log_file: Optional log file path. If provided, logs will be written to this file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding multiple handlers
    if logger.handlers:
        return logger

    logger.setLevel(level)
    # Handlers are attached per logger; do not duplicate through the root logger
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        logger.addHandler(_file_handler(log_file, level))

    return logger


def configure_package_logging(level: int = logging.INFO,
                              log_file: Optional[str] = None) -> None:
    """
    Apply a level (and optional log file) to every package logger.

    Module loggers are created at import time with the default level, before
    any configuration has been read. This walks the registered loggers under
    the package prefix and updates them in place.

    Args:
        level: Logging level to apply
        log_file: Optional log file shared by all package loggers
    """
    package_loggers = [
        logger
        for name, logger in list(logging.root.manager.loggerDict.items())
        if isinstance(logger, logging.Logger) and name.startswith(PACKAGE_LOGGER_PREFIX)
    ]

    needs_file = [
        logger
        for logger in package_loggers
        if not any(isinstance(h, logging.FileHandler) for h in logger.handlers)
    ]
    # Opened only when some logger will own it
    shared_file_handler = _file_handler(log_file, level) if log_file and needs_file else None

    for logger in package_loggers:
        logger.setLevel(level)
        for handler in logger.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
                handler.setLevel(level)

    if shared_file_handler is not None:
        for logger in needs_file:
            logger.addHandler(shared_file_handler)
