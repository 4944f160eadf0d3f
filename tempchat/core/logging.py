# tempchat/core/logging.py

import logging
import sys
from typing import Optional

from tempchat.core.config import settings


DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Library loggers and the level they are capped at
LIBRARY_LEVELS = {
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "redis": logging.WARNING,
    "google.cloud.pubsub_v1": logging.WARNING,
    "google.api_core": logging.WARNING,
    "httpx": logging.WARNING,
    "uvicorn.access": logging.WARNING,
}


def setup_logging(level_name: Optional[str] = None) -> None:
    """
    Configure logging for the tempchat service.

    Records go to stdout in ``DEFAULT_FORMAT``. The level comes from
    ``level_name`` or ``settings.LOG_LEVEL``; unknown names fall back to INFO.
    When Uvicorn (or a test runner) already installed handlers, only the
    level is changed.
    """
    level = logging.getLevelName((level_name or settings.LOG_LEVEL).upper())
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        root_logger.addHandler(handler)

    for name, cap in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(max(cap, level))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Usage:
        from tempchat.core.logging import get_logger

        logger = get_logger(__name__)
        logger.info("Room %s created", room.id)
    """
    return logging.getLogger(name)
