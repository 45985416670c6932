# stockpulse/core/log.py
"""Logging setup shared by the API process, the scheduler and the CLI."""

import logging

from stockpulse.core.config import settings

_FORMAT = "%(asctime)s | %(levelname)-8s | %(module)s.%(funcName)s | %(message)s"


def setup_logging(level: str | None = None) -> logging.Logger:
    """
    Configure the ``stockpulse`` logger with a single console handler.

    Calling it more than once keeps the existing handler, so the API lifespan
    and the CLI can both call it safely.
    """
    logger = logging.getLogger("stockpulse")
    logger.setLevel((level or settings.LOG_LEVEL).upper())

    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
