from __future__ import annotations

import logging
import sys

from chainwatch.core.logger import configure_structlog


def configure_logging(level: str = "INFO") -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    configure_structlog()
