"""Logger factory shared by every nlpbridge module."""

from __future__ import annotations

import logging
import os
from typing import Final

# NLPBRIDGE_LOG_LEVEL picks the level of package loggers (default INFO)
_LEVEL_NAME: Final[str] = os.getenv("NLPBRIDGE_LOG_LEVEL", "INFO").upper()
_PACKAGE_LOGGER_LEVEL: Final[int] = getattr(logging, _LEVEL_NAME, logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Return the logger for *name* at the package level.

    Only the level is set. Output goes wherever the embedding application
    routes the ``nlpbridge`` loggers.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_PACKAGE_LOGGER_LEVEL)
    return logger
