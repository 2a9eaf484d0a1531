#!/usr/bin/env python3

import logging
import os
import sys
from typing import Optional

LOGGER_NAME = "cxxparse"

_COLORS = {
    logging.DEBUG: "\033[36m",     # cyan
    logging.INFO: "\033[32m",      # green
    logging.WARNING: "\033[33m",   # yellow
    logging.ERROR: "\033[31m",     # red
    logging.CRITICAL: "\033[1;31m",
}
_RESET = "\033[0m"

class ColoredFormatter(logging.Formatter):
    """Formatter painting the level name when writing to a terminal"""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = _COLORS.get(record.levelno)
        if not color:
            return message
        return message.replace(record.levelname, f"{color}{record.levelname}{_RESET}", 1)

def setup_logging(verbose: bool = False, colored: bool = True,
                  log_file: Optional[str] = None) -> logging.Logger:
    """Configure and return the package logger

    Safe to call repeatedly: handlers are only installed once, later calls
    adjust the level (and add a file handler if a new log file is requested).

    Args:
        verbose: Log DEBUG messages when True, INFO and above otherwise
        colored: Paint level names on the console
        log_file: Optional path of a file receiving the same records

    Returns:
        The `cxxparse` logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    if not any(getattr(h, "_cxxparse_console", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        use_color = colored and hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
        handler.setFormatter(ColoredFormatter(fmt) if use_color else logging.Formatter(fmt))
        handler._cxxparse_console = True
        logger.addHandler(handler)
        logger.propagate = False
    if log_file and not any(getattr(h, "baseFilename", None) == os.path.abspath(log_file) for h in logger.handlers):
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(fmt))
        logger.addHandler(file_handler)
    if verbose:
        logger.setLevel(logging.DEBUG)
    elif logger.level == logging.NOTSET:
        logger.setLevel(logging.INFO)
    return logger
