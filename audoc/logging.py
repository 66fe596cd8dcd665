"""Logging utilities for audoc commands.

Every module logs through ``audoc.<name>`` loggers. The console shows INFO
(DEBUG with ``--verbose``); an optional log file always records DEBUG so a
long ingest or cycle run can be inspected after the fact.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "audoc"
_CONSOLE_FORMAT = "[audoc] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s]: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the audoc hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Install the console handler and, when ``log_file`` is given, a DEBUG file sink."""
    console_level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.propagate = False
    _drop_handlers(logger)

    console = logging.StreamHandler()
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is None:
        logger.setLevel(console_level)
        return logger

    log_path = Path(log_file).expanduser()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    sink = logging.FileHandler(log_path, encoding="utf-8")
    sink.setLevel(logging.DEBUG)
    sink.setFormatter(logging.Formatter(_FILE_FORMAT))
    logger.addHandler(sink)
    logger.setLevel(logging.DEBUG)
    logger.debug("Logging to %s", log_path)
    return logger


def _drop_handlers(logger: logging.Logger) -> None:
    # Repeated CLI invocations in one process must not stack handlers or leak file descriptors.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


__all__ = ["configure_logging", "get_logger"]
