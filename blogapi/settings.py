"""
Centralized configuration for the blog image service.

Design decisions:
- Frozen dataclass: immutable after creation, prevents accidental modification
- Environment variables: 12-factor app compliance, easy deployment configuration
- Sensible defaults: works out of the box for development

Key parameters explained:

Uploads:
- max_upload_bytes=5 MiB: hard ceiling checked before any byte is stored
- web_root: directory that stands in for the public static root; stored
  images live under web_root/uploads_dir/<subfolder>/
- uploads_dir="uploads": also the prefix that marks a reference as local
  ("/uploads/..."). References outside that prefix are never deleted.
- image_subfolder="posts": logical folder for post images

Public URLs:
- base_url: prepended to local references when rendering absolute URLs
  (swap for a CDN host in production)

Identity:
- auth_enabled=True: streamlit-authenticator login gate
- anonymous_owner: owner id used for every post when auth is disabled
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"
SQLITE_PATH = DATA_DIR / "blog.sqlite"

DATA_DIR.mkdir(parents=True, exist_ok=True)


def _env_bool(name: str, default: bool) -> bool:
    """Parse boolean from environment variable."""
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    v = os.getenv(name)
    if v is None:
        return default
    return int(v)


def _env_path(name: str, default: Path) -> Path:
    """Parse a filesystem path from environment variable."""
    v = os.getenv(name)
    if not v:
        return default
    return Path(v).expanduser()


@dataclass(frozen=True)
class Settings:
    """
    Application settings.

    All settings can be overridden via environment variables.

    Attributes:
        max_upload_bytes: Largest accepted image upload, in bytes
        web_root: Root directory that stored images are written under
        uploads_dir: First path segment of every local image reference
        image_subfolder: Subfolder used for post images
        base_url: Public base URL for resolved image references
        auth_enabled: Whether the login gate is active
        anonymous_owner: Owner id when auth is disabled
        app_env: Deployment environment label
        app_version: Reported application version
        log_level: Root logging level name
    """

    # Upload limits
    max_upload_bytes: int = _env_int("MAX_UPLOAD_BYTES", 5 * 1024 * 1024)

    # Storage layout
    web_root: Path = _env_path("WEB_ROOT", DATA_DIR / "wwwroot")
    uploads_dir: str = os.getenv("UPLOADS_DIR", "uploads")
    image_subfolder: str = os.getenv("IMAGE_SUBFOLDER", "posts")

    # Public URLs
    base_url: str = os.getenv("BASE_URL", "https://localhost:5001")

    # Authentication
    auth_enabled: bool = _env_bool("AUTH_ENABLED", True)
    anonymous_owner: str = os.getenv("ANONYMOUS_OWNER", "anonymous")

    # Reporting
    app_env: str = os.getenv("APP_ENV", "Development")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
