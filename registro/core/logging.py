"""Logging setup shared by the API process."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Configure the package logger once and return it.

    Handlers are attached to the ``registro`` logger only, so uvicorn and
    SQLAlchemy keep their own configuration.
    """

    logger = logging.getLogger("registro")
    logger.setLevel(level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger
