"""Logging utilities for contextify."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from colorama import Fore, Style, just_fix_windows_console

_LOGGER_NAME = "contextify"

_LEVEL_COLOURS = {
    logging.DEBUG: Style.DIM,
    logging.INFO: Fore.GREEN,
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED + Style.BRIGHT,
}


class _ColourFormatter(logging.Formatter):
    """Prefix console records with a colour chosen by level."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        colour = _LEVEL_COLOURS.get(record.levelno)
        if not colour:
            return message
        return f"{colour}{message}{Style.RESET_ALL}"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the contextify hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None, colour: bool = True
) -> logging.Logger:
    """Configure the contextify logger with stderr output and an optional file sink."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers so repeated CLI invocations in one process don't duplicate output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    fmt = "[contextify] %(levelname)s %(message)s"
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    if colour and sys.stderr.isatty():
        just_fix_windows_console()
        stream_handler.setFormatter(_ColourFormatter(fmt))
    else:
        stream_handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "get_logger"]
