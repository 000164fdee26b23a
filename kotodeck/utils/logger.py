"""Console logging setup."""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_logger(name: Optional[str] = "kotodeck", level: int = logging.INFO) -> logging.Logger:
    """
    Configure and return a logger writing to stderr.

    Calling it again for the same name only updates the level.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not any(getattr(h, "_kotodeck", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        handler._kotodeck = True
        logger.addHandler(handler)

    return logger
