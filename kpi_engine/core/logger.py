"""
Logging setup.

Every module gets its logger through setup_logger(__name__) so handlers and
levels are configured in one place.
"""

import logging
import sys

from kpi_engine.core.config import get_settings

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logger(name: str) -> logging.Logger:
    """Return a logger with a single stream handler at the configured level."""
    log = logging.getLogger(name)
    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        log.addHandler(handler)
        log.propagate = False
    log.setLevel(get_settings().LOG_LEVEL.upper())
    return log


logger = setup_logger("kpi_engine")
