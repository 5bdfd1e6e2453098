"""
JewelTone Logging
Loguru sink setup and request-scoped loggers.
"""
import sys
from typing import Optional

from loguru import logger

from jeweltone.config import config

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {message} | {extra}"

_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """Replace loguru's default sink with a single stdout sink."""
    global _configured
    logger.remove()
    logger.add(sys.stdout, format=LOG_FORMAT, level=level or config.LOG_LEVEL)
    _configured = True


def get_logger(**context):
    """
    Get a logger bound to `context` (request id, stage fields).

    Configures the sink on first use, so library code can log before the
    app has called configure_logging.
    """
    if not _configured:
        configure_logging()
    return logger.bind(**context)
