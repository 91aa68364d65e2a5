"""
Logging setup for the storefront.

One console handler on the package logger; modules just do
`logger = logging.getLogger(__name__)`.

Log format:
    2026-10-19 10:15:30 [INFO    ] assisads.fulfillment - order PED-123 ...
"""
import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    app_name: str = "assisads",
    log_level: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the package logger. Safe to call more than once: existing
    handlers are replaced, not stacked.

    Args:
        app_name: name of the package logger
        log_level: level name; defaults to $LOG_LEVEL, then INFO
    """
    level_name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger(app_name)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    return logger
