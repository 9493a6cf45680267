"""
Audit trail for post and image lifecycle events.

Every event is one JSON line in data/audit.jsonl, written by a dedicated
"audit" logger that does not propagate to the application logs.

Only these fields exist on an event:
- event_type, request_id, timestamp, session_id
- post_id
- references: storage references we generated ("/uploads/posts/<uuid>.png")
  or external URLs the post pointed at
- size_bytes, latency_ms: stored image size and time spent storing it
- error_code: rejection reason, failure code, or auth action

Titles, post bodies, alt text, uploaded filenames and usernames have no
field to go into. Callers go through the log_* helpers below rather than
building events themselves.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from typing import Literal, Optional

from .settings import DATA_DIR

AUDIT_LOG_PATH = DATA_DIR / "audit.jsonl"
AUDIT_MAX_BYTES = 10 * 1024 * 1024
AUDIT_BACKUPS = 5

PostEventType = Literal[
    "post_create",
    "post_update",
    "post_delete",
    "image_attach",
    "image_replace",
    "image_detach",
]
AuthAction = Literal["login_success", "login_failed", "logout"]
EventType = Literal[PostEventType, "rejected", "error", "auth"]


def generate_request_id() -> str:
    """Short random id tying together the events of one operation."""
    return uuid.uuid4().hex[:16]


def utcnow_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class AuditEvent:
    """One audit line. Identifiers, numbers and codes only."""

    event_type: EventType
    request_id: str
    timestamp: str = field(default_factory=utcnow_iso)
    session_id: str = ""
    post_id: Optional[int] = None
    references: list[str] = field(default_factory=list)
    size_bytes: int = 0
    latency_ms: int = 0
    error_code: str = ""

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)


def _get_audit_logger() -> logging.Logger:
    audit = logging.getLogger("audit")
    if audit.handlers:
        return audit

    AUDIT_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        AUDIT_LOG_PATH,
        maxBytes=AUDIT_MAX_BYTES,
        backupCount=AUDIT_BACKUPS,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    audit.addHandler(handler)
    audit.setLevel(logging.INFO)
    audit.propagate = False
    return audit


def _write(event: AuditEvent) -> None:
    _get_audit_logger().info(event.to_json())


def log_post_event(
    event_type: PostEventType,
    request_id: str,
    session_id: str,
    post_id: int,
    references: Optional[list[str]] = None,
    size_bytes: int = 0,
    latency_ms: int = 0,
) -> None:
    """Record a completed create/update/delete or image attach/replace/detach."""
    _write(
        AuditEvent(
            event_type=event_type,
            request_id=request_id,
            session_id=session_id,
            post_id=post_id,
            references=list(references or []),
            size_bytes=size_bytes,
            latency_ms=latency_ms,
        )
    )


def log_rejection(
    request_id: str,
    session_id: str,
    reason: str,
    post_id: Optional[int] = None,
) -> None:
    """Record a refused upload or image URL by its reason code."""
    _write(
        AuditEvent(
            event_type="rejected",
            request_id=request_id,
            session_id=session_id,
            post_id=post_id,
            error_code=reason,
        )
    )


def log_error(
    request_id: str,
    session_id: str,
    error_code: str,
    post_id: Optional[int] = None,
    references: Optional[list[str]] = None,
) -> None:
    """
    Record a storage failure.

    Exception messages are left out: they can echo paths or user input.
    """
    _write(
        AuditEvent(
            event_type="error",
            request_id=request_id,
            session_id=session_id,
            post_id=post_id,
            references=list(references or []),
            error_code=error_code,
        )
    )


def log_auth(request_id: str, session_id: str, action: AuthAction) -> None:
    # The action goes in error_code; there is no user field
    _write(
        AuditEvent(
            event_type="auth",
            request_id=request_id,
            session_id=session_id,
            error_code=action,
        )
    )


class RequestTimer:
    """Measure a block in whole milliseconds: ``with RequestTimer() as t: ...; t.elapsed_ms``."""

    def __init__(self):
        self._started: float = 0.0
        self.elapsed_ms: int = 0

    def __enter__(self) -> RequestTimer:
        self._started = time.perf_counter()
        return self

    def __exit__(self, *exc_info) -> None:
        self.elapsed_ms = round((time.perf_counter() - self._started) * 1000)
