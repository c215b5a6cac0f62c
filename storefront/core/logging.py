"""Logging configuration."""
import logging
import sys
from typing import Optional

from storefront.core.config import settings

# Chatty libraries that only log at INFO about individual requests
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "aiosqlite")


def setup_logging(level: Optional[str] = None) -> None:
    """Configure application logging to stdout."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
