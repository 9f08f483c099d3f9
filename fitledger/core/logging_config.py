import logging
import sys

from fitledger.core.config import LOG_LEVEL

_formatter = logging.Formatter(
    '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)


def configure_logging(level: str = LOG_LEVEL) -> logging.Logger:
    """Attach a console handler to the package logger. Safe to call more than once."""
    logger = logging.getLogger("fitledger")
    logger.setLevel(getattr(logging, level, logging.INFO))
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(_formatter)
    logger.addHandler(console_handler)
    return logger
