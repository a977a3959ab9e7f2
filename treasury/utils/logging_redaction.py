"""
Logging redaction helpers.
Redacts bot tokens, gateway credentials and key material from log messages.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable


_PATTERNS: Iterable[tuple[re.Pattern, str]] = (
    # Telegram bot token in URL: /bot<token>/
    (re.compile(r"bot\d+:[A-Za-z0-9_-]{20,}"), "bot[REDACTED]"),
    # Authorization: Bearer <token>
    (re.compile(r"(Bearer\s+)([A-Za-z0-9\-\._]+)"), r"\1[REDACTED]"),
    # Gateway API key in config dumps or query strings
    (re.compile(r"(?i)(api[_-]?key|api[_-]?secret)\s*[:=]\s*([A-Za-z0-9\-\._]+)"), r"\1=[REDACTED]"),
    # Private keys: named assignments, then any bare 32-byte hex string
    (re.compile(r"(?i)(private[_-]?key)\s*[:=]\s*(0x)?[0-9a-f]{64}"), r"\1=[REDACTED]"),
    (re.compile(r"\b0x[0-9a-fA-F]{64}\b"), "0x[REDACTED]"),
)


def redact_message(message: str) -> str:
    redacted = message
    for pattern, replacement in _PATTERNS:
        redacted = pattern.sub(replacement, redacted)
    return redacted


class RedactingFilter(logging.Filter):
    """Filter that redacts sensitive data from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Malformed format args: leave the record for the handler to report
            return True
        record.msg = redact_message(message)
        record.args = ()
        return True


def install_redaction_filter() -> None:
    root = logging.getLogger()
    for existing in root.filters:
        if isinstance(existing, RedactingFilter):
            return
    redactor = RedactingFilter()
    root.addFilter(redactor)
    # Root logger filters do not apply to records propagated from child loggers
    for handler in root.handlers:
        if not any(isinstance(f, RedactingFilter) for f in handler.filters):
            handler.addFilter(redactor)
