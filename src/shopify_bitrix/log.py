"""
Logger factory shared by the mapping modules.
"""

import logging
import os


def get_logger(name: str) -> logging.Logger:
    """Return a named logger whose level follows the LOG_LEVEL env var."""
    logger = logging.getLogger(name)
    level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    try:
        logger.setLevel(level)
    except ValueError:
        logger.setLevel(logging.INFO)
        logger.warning(f"Unknown LOG_LEVEL {level!r}, using INFO")
    return logger
