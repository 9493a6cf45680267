"""
Upload validation for post images.

Design decisions:
- Whitelist approach: only known image extensions and MIME types
- Signature check last: declared metadata is cheap to check, content
  sniffing needs a read
- First-failure semantics: checks always run in the same order and the
  first failing one is reported

Why all three layers:
- Extension can be spoofed (malicious.exe -> malicious.jpg)
- Content-Type comes from the client and is just as untrusted
- Magic bytes reveal the true file type, and win over both: a .png
  upload carrying JPEG bytes is rejected

The validator never consumes the upload: it reads a small prefix and
seeks back so storage can still copy the full content.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .errors import ValidationRejected
from .settings import settings
from .signatures import SIGNATURE_LENGTH, ImageKind, sniff_image
from .uploads import Upload

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}

# What the declared metadata must say for each detected format
EXTENSIONS_BY_KIND = {
    ImageKind.JPEG: {".jpg", ".jpeg"},
    ImageKind.PNG: {".png"},
    ImageKind.GIF: {".gif"},
    ImageKind.WEBP: {".webp"},
}

CONTENT_TYPE_BY_KIND = {
    ImageKind.JPEG: "image/jpeg",
    ImageKind.PNG: "image/png",
    ImageKind.GIF: "image/gif",
    ImageKind.WEBP: "image/webp",
}

# Rejection reason codes, in check order
EMPTY = "empty"
TOO_LARGE = "too_large"
BAD_EXTENSION = "bad_extension"
BAD_CONTENT_TYPE = "bad_content_type"
BAD_SIGNATURE = "bad_signature"
SIGNATURE_MISMATCH = "signature_mismatch"
UNREADABLE = "unreadable"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one upload."""

    ok: bool
    reason: str = ""
    message: str = ""
    kind: ImageKind = ImageKind.UNKNOWN

    def raise_for_rejection(self) -> None:
        """Raise ValidationRejected if this result is a rejection."""
        if not self.ok:
            raise ValidationRejected(self.reason, self.message)


def file_extension(filename: str) -> str:
    """
    Extract the lowercase extension, dot included.

    Args:
        filename: Original filename as uploaded

    Returns:
        e.g. ".png", or "" when there is none
    """
    return Path(filename or "").suffix.lower()


def _reject(upload: Upload | None, reason: str, message: str) -> ValidationResult:
    logger.warning(
        "Image upload rejected",
        extra={
            "error_code": reason.upper(),
            "upload_filename": getattr(upload, "filename", None),
            "size_bytes": getattr(upload, "size", None),
            "content_type": getattr(upload, "content_type", None),
        },
    )
    return ValidationResult(ok=False, reason=reason, message=message)


def read_signature(upload: Upload) -> bytes:
    """
    Read the leading bytes of an upload without consuming it.

    The stream position is restored even if the read fails.
    """
    pos = upload.tell()
    try:
        upload.seek(0)
        return upload.read(SIGNATURE_LENGTH)
    finally:
        upload.seek(pos)


def validate_image(upload: Upload | None, max_bytes: int | None = None) -> ValidationResult:
    """
    Validate an image upload.

    Checks, in order:
    1. present and non-empty
    2. size within max_bytes
    3. extension whitelisted
    4. declared content type whitelisted
    5. leading bytes match a known image signature, and that format
       agrees with the declared extension and content type

    Args:
        upload: The upload to check (None counts as empty)
        max_bytes: Size ceiling, defaults to settings.max_upload_bytes

    Returns:
        ValidationResult; ok=True only if every check passed
    """
    limit = settings.max_upload_bytes if max_bytes is None else max_bytes

    if upload is None or not upload.size:
        return _reject(upload, EMPTY, "No image content was provided.")

    if upload.size > limit:
        return _reject(
            upload,
            TOO_LARGE,
            f"Image is too large ({upload.size} bytes). Maximum is {limit} bytes.",
        )

    ext = file_extension(upload.filename)
    if ext not in ALLOWED_EXTENSIONS:
        return _reject(
            upload,
            BAD_EXTENSION,
            f"Unsupported file extension '{ext}'. Allowed: {sorted(ALLOWED_EXTENSIONS)}",
        )

    content_type = (upload.content_type or "").strip().lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        return _reject(
            upload,
            BAD_CONTENT_TYPE,
            f"Unsupported content type '{content_type}'. Allowed: {sorted(ALLOWED_CONTENT_TYPES)}",
        )

    try:
        head = read_signature(upload)
    except (OSError, ValueError):
        logger.exception("Could not read upload content", extra={"error_code": "UPLOAD_READ_ERROR"})
        return _reject(upload, UNREADABLE, "Image content could not be read.")

    kind = sniff_image(head)
    if kind is ImageKind.UNKNOWN:
        return _reject(upload, BAD_SIGNATURE, "File content is not a recognised image.")

    if ext not in EXTENSIONS_BY_KIND[kind] or content_type != CONTENT_TYPE_BY_KIND[kind]:
        return _reject(
            upload,
            SIGNATURE_MISMATCH,
            f"File content is {kind.value.upper()}, which does not match '{ext}' / '{content_type}'.",
        )

    return ValidationResult(ok=True, kind=kind)
