from __future__ import annotations

import logging

PACKAGE_LOGGER = "neuropipe"


def configure_logging(level: str | int = logging.INFO) -> logging.Logger:
    """Attach a console handler to the package logger if none is configured."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[neuropipe] %(message)s"))
        logger.addHandler(handler)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)
    return logger
