"""
Service logging.

A single stdout handler with secrets redacted. Database, HTTP client and
scheduler loggers stay at WARNING unless the service runs at DEBUG.
"""

import logging
import sys

from treasury.utils.logging_redaction import install_redaction_filter

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "apscheduler")


def setup_logging(level: str = "INFO") -> int:
    """Configure root logging and return the level actually applied."""
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    logging.basicConfig(
        level=resolved,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    dependency_level = logging.DEBUG if resolved <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(dependency_level)

    install_redaction_filter()
    return resolved
