"""Logging setup for applications embedding the mentorship client."""

import logging
from typing import Optional

from .config import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty at INFO; only their warnings are interesting here.
QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging(settings: Optional[Settings] = None) -> None:
    settings = settings or Settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("mansa_mentorship").setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
