import logging
import os

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s]: %(message)s"


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Logger factory; level defaults to LOG_LEVEL (DEBUG when unset)."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel((level or os.getenv("LOG_LEVEL", "DEBUG")).upper())
    return logger
