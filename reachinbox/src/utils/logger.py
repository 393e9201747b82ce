"""
ReachInbox - Logging
=====================
Logger factory shared by the pipeline, the index adapter, the API and
the CLI.

Level resolution (first match wins):
  1. the ``level`` argument of ``get_logger``
  2. ``settings.LOG_LEVEL``
  3. ``settings.ENV``: ``"dev"`` → DEBUG, ``"prod"`` → WARNING

Records carry the thread name because embedding, search and generation
may run on timeout worker threads.

Usage:
    from reachinbox.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("[RAG] Pipeline complete")
"""

import logging
import sys

from reachinbox.config.settings import settings

_ENV_LEVELS = {"dev": logging.DEBUG, "prod": logging.WARNING}

_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(env: str, log_level: str | None = None) -> int:
    """Map the ``ENV`` / ``LOG_LEVEL`` settings to a ``logging`` level."""
    if log_level:
        return logging.getLevelName(log_level.upper())
    return _ENV_LEVELS.get(env, logging.INFO)


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return the named logger, attaching a stdout handler on first use.

    Args:
        name:  Usually ``__name__`` of the calling module.
        level: Explicit level; defaults to the level resolved from settings.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    resolved = level if level is not None else resolve_level(settings.ENV, settings.LOG_LEVEL)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    # Own handler only; the root logger would print it twice
    logger.propagate = False
    return logger
