"""
Logging configuration for the application.

Design decisions:
- Basic format: Timestamp | Level | Logger | Message, followed by any
  `extra={...}` fields as key=value pairs (post_id, reference, error_code)
- stdout output: Compatible with container logging (Docker, K8s)
- Level from settings (LOG_LEVEL), INFO by default
- Idempotent setup: Safe to call multiple times (every Streamlit page calls it)

SECURITY:
- Application logs may contain storage references and post ids
- Use audit_log.py for structured audit events
- Never log post content here

Usage:
    from blogapi.logging_config import setup_logging
    setup_logging()  # Call once at startup
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from .settings import settings

# Attributes every LogRecord has; anything else came in through `extra`
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class ExtraFormatter(logging.Formatter):
    """Append `extra` fields to the formatted line."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = {k: v for k, v in vars(record).items() if k not in _RESERVED}
        if not extras:
            return line
        pairs = " ".join(f"{k}={v}" for k, v in sorted(extras.items()))
        return f"{line} | {pairs}"


def setup_logging(level: Optional[int] = None) -> None:
    """
    Configure structured-ish logging format.
    Idempotent: won't add duplicate handlers if already configured.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    if level is None:
        level = logging.getLevelName(settings.log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ExtraFormatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    logging.basicConfig(level=level, handlers=[handler])
