"""Logging setup for the desktop app.

Everything logs through the ``delivery_coach`` logger.  ``setup_logging``
attaches a rotating file handler once per log file, so calling it again (for
example after the log directory changes) does not duplicate lines.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOGGER_NAME = "delivery_coach"
LOG_FILE_NAME = "delivery_coach.log"

_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(message)s"

# httpx logs every request at INFO, which would drown out session events.
_QUIET_LOGGERS = ("httpx", "httpcore")


def setup_logging(
    log_dir: str | Path, level: int = logging.INFO, console: bool = False
) -> logging.Logger:
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    log_path = (directory / LOG_FILE_NAME).resolve()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    has_file = any(
        isinstance(h, RotatingFileHandler) and Path(h.baseFilename) == log_path
        for h in logger.handlers
    )
    if not has_file:
        handler = RotatingFileHandler(log_path, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)

    if console and not any(type(h) is logging.StreamHandler for h in logger.handlers):
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        logger.addHandler(stream)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging to %s", log_path)
    return logger
