"""
Process start time, uptime and version reporting.

AppInfo is captured once when the process starts and handed to whatever
reports it (the home page health panel). It is never mutated.
"""

from __future__ import annotations

import logging
import os
import platform
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Optional

from .settings import settings

logger = logging.getLogger(__name__)


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'' if n == 1 else 's'}"


def format_uptime(uptime: timedelta) -> str:
    """
    Human-readable uptime, e.g. "2 days, 3 hours, 1 minute".

    Seconds are only shown while uptime is under a minute.
    """
    total = max(int(uptime.total_seconds()), 0)
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, seconds = divmod(rem, 60)

    parts = []
    if days:
        parts.append(_plural(days, "day"))
    if hours:
        parts.append(_plural(hours, "hour"))
    if minutes:
        parts.append(_plural(minutes, "minute"))
    if not parts:
        parts.append(_plural(seconds, "second"))
    return ", ".join(parts)


@dataclass(frozen=True)
class AppInfo:
    """Read-only process information."""

    start_time: datetime
    version: str
    environment: str

    def uptime(self, now: Optional[datetime] = None) -> timedelta:
        return (now or datetime.now(UTC)) - self.start_time

    def uptime_string(self, now: Optional[datetime] = None) -> str:
        return format_uptime(self.uptime(now))

    def health(self, now: Optional[datetime] = None) -> dict[str, Any]:
        now = now or datetime.now(UTC)
        uptime = self.uptime(now)
        return {
            "status": "Healthy",
            "timestamp": now.isoformat(),
            "uptime": format_uptime(uptime),
            "uptime_seconds": uptime.total_seconds(),
            "environment": self.environment,
            "start_time": self.start_time.isoformat(),
            "version": self.version,
        }


def capture_app_info() -> AppInfo:
    """Snapshot the start time now. Call once per process."""
    return AppInfo(
        start_time=datetime.now(UTC),
        version=settings.app_version,
        environment=settings.app_env,
    )


def log_startup(info: AppInfo) -> None:
    """Log start time and basic host information."""
    logger.info(
        "Application starting up",
        extra={"start_time": info.start_time.isoformat(), "version": info.version},
    )
    logger.info(
        "Host information",
        extra={
            "environment": info.environment,
            "os": platform.platform(),
            "machine": platform.node(),
            "cpu_count": os.cpu_count(),
        },
    )
