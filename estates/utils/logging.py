"""Logger factory for the listings backend."""

from __future__ import annotations

import logging
import os
import sys
import time
from typing import Optional

ROOT_LOGGER = "estates"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# the dispatcher writes its own request line
QUIET_LOGGERS = ("uvicorn.access",)


class UtcFormatter(logging.Formatter):
    converter = time.gmtime


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Install a single stderr handler on the ``estates`` logger.

    Records read ``<utc time>Z LEVEL estates.<child> event key=value ...``.
    Calling again only changes the level.
    """

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel((level or LOG_LEVEL).upper())
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        UtcFormatter(fmt="%(asctime)sZ %(levelname)s %(name)s %(message)s", datefmt="%Y-%m-%dT%H:%M:%S")
    )
    logger.addHandler(handler)
    logger.propagate = False
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return logger


def get_logger(child: Optional[str] = None) -> logging.Logger:
    base = logging.getLogger(ROOT_LOGGER)
    if not base.handlers:
        configure_logging()
    return base.getChild(child) if child else base
