"""
Blob storage for post images on the local filesystem.

Design decisions:
- Random names: uuid4 per save, so concurrent saves never collide and
  stored names are unguessable. The original extension is kept (lowercased)
  so the static server can pick a Content-Type.
- Write-once: files are opened with "xb" and never rewritten. Replacing an
  image always produces a new reference.
- References, not paths: callers store "/uploads/<subfolder>/<name>", which
  maps onto web_root and doubles as the public URL path.

Failure handling:
- save() removes any partial file before raising StorageWriteFailure
- delete() never raises; it returns a DeleteResult the caller can log.
  The post record is authoritative, an orphaned file is an ops issue.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path

from .errors import StorageWriteFailure
from .image_validation import file_extension
from .settings import settings
from .uploads import Upload

logger = logging.getLogger(__name__)

SAFE_SEGMENT = re.compile(r"^[a-zA-Z0-9_-]+$")

CHUNK_SIZE = 64 * 1024


class DeleteStatus(str, Enum):
    DELETED = "deleted"
    MISSING = "missing"  # nothing to delete
    SKIPPED = "skipped"  # empty or foreign reference
    FAILED = "failed"


@dataclass(frozen=True)
class DeleteResult:
    """Outcome of a best-effort blob deletion."""

    reference: str
    status: DeleteStatus
    error: str = ""

    @property
    def failed(self) -> bool:
        return self.status is DeleteStatus.FAILED

    @property
    def removed(self) -> bool:
        return self.status is DeleteStatus.DELETED


class BlobStore:
    """Filesystem store rooted at web_root/uploads_dir."""

    def __init__(
        self,
        web_root: Path,
        uploads_dir: str = "uploads",
        base_url: str = "https://localhost:5001",
        chunk_size: int = CHUNK_SIZE,
    ):
        if not SAFE_SEGMENT.match(uploads_dir or ""):
            raise ValueError(f"Invalid uploads directory name: {uploads_dir!r}")
        self.web_root = Path(web_root).resolve()
        self.uploads_dir = uploads_dir
        self.base_url = base_url.rstrip("/")
        self.chunk_size = chunk_size

    @property
    def uploads_root(self) -> Path:
        return self.web_root / self.uploads_dir

    @property
    def reference_prefix(self) -> str:
        return f"/{self.uploads_dir}/"

    def is_local(self, reference: str | None) -> bool:
        """True if the reference points at a blob this store wrote."""
        return bool(reference) and reference.startswith(self.reference_prefix)

    def resolve_path(self, reference: str) -> Path:
        """
        Map a local reference onto an absolute path.

        Raises:
            ValueError: if the reference is foreign or escapes the uploads root
        """
        if not self.is_local(reference):
            raise ValueError(f"Not a local reference: {reference!r}")
        path = (self.web_root / reference.lstrip("/")).resolve()
        if not path.is_relative_to(self.uploads_root):
            raise ValueError(f"Reference escapes storage root: {reference!r}")
        return path

    def resolve_url(self, reference: str) -> str:
        """
        Build the public URL for a reference.

        Local references are appended to base_url; foreign references are
        already URLs and are returned as-is.
        """
        if not self.is_local(reference):
            return reference
        return f"{self.base_url}{reference}"

    def _ensure_folder(self, subfolder: str) -> Path:
        folder = self.uploads_root / subfolder
        if not folder.is_dir():
            folder.mkdir(parents=True, exist_ok=True)
            logger.info("Created upload directory", extra={"directory": str(folder)})
        return folder

    def _copy(self, upload: Upload, fh) -> int:
        # Reads at most size + 1 bytes: one past the declared size proves it was a lie
        limit = upload.size
        written = 0
        upload.seek(0)
        while True:
            chunk = upload.read(min(self.chunk_size, limit + 1 - written))
            if not chunk:
                break
            fh.write(chunk)
            written += len(chunk)
            if written > limit:
                raise OSError(f"Upload exceeds its declared size of {limit} bytes")
        fh.flush()
        return written

    def save(self, upload: Upload, subfolder: str = "posts") -> str:
        """
        Persist an (already validated) upload under a fresh unique name.

        Args:
            upload: Content to store; read from position 0
            subfolder: Logical folder, a single safe path segment

        Returns:
            Reference of the form "/<uploads_dir>/<subfolder>/<uuid><ext>"

        Raises:
            StorageWriteFailure: on any I/O error, after cleanup
            ValueError: if subfolder is not a safe name
        """
        if not SAFE_SEGMENT.match(subfolder or ""):
            raise ValueError(f"Invalid subfolder name: {subfolder!r}")
        try:
            folder = self._ensure_folder(subfolder)
        except OSError as e:
            logger.exception(
                "Failed to create upload directory",
                extra={"subfolder": subfolder, "error_code": "IMAGE_DIR_ERROR"},
            )
            raise StorageWriteFailure(f"Could not prepare storage: {type(e).__name__}") from e

        name = f"{uuid.uuid4()}{file_extension(upload.filename)}"
        path = folder / name

        created = False
        try:
            with open(path, "xb") as fh:
                created = True
                written = self._copy(upload, fh)
            if written != upload.size:
                raise OSError(f"Short write: {written} of {upload.size} bytes")
        except Exception as e:
            logger.exception(
                "Failed to save image",
                extra={"path": str(path), "error_code": "IMAGE_SAVE_ERROR"},
            )
            if created:
                try:
                    path.unlink(missing_ok=True)
                except OSError:
                    logger.warning(
                        "Failed to remove partial image",
                        extra={"path": str(path), "error_code": "PARTIAL_CLEANUP_ERROR"},
                    )
            raise StorageWriteFailure(f"Could not store image: {type(e).__name__}") from e

        reference = f"/{self.uploads_dir}/{subfolder}/{name}"
        logger.info(
            "Saved image",
            extra={"reference": reference, "size_bytes": written},
        )
        return reference

    def delete(self, reference: str | None) -> DeleteResult:
        """
        Delete a stored blob. Never raises.

        Absent files count as success (MISSING), which makes repeated
        deletes harmless. Foreign references are SKIPPED.
        """
        if not self.is_local(reference):
            return DeleteResult(reference or "", DeleteStatus.SKIPPED)

        try:
            path = self.resolve_path(reference)
        except ValueError as e:
            logger.warning(
                "Refusing to delete outside storage root",
                extra={"reference": reference, "error_code": "IMAGE_PATH_REJECTED"},
            )
            return DeleteResult(reference, DeleteStatus.FAILED, str(e))

        try:
            path.unlink()
        except FileNotFoundError:
            return DeleteResult(reference, DeleteStatus.MISSING)
        except OSError as e:
            logger.warning(
                "Failed to delete image",
                extra={"reference": reference, "error_code": "IMAGE_DELETE_ERROR"},
            )
            return DeleteResult(reference, DeleteStatus.FAILED, f"{type(e).__name__}: {e}")

        logger.info("Deleted image", extra={"reference": reference})
        return DeleteResult(reference, DeleteStatus.DELETED)


@lru_cache(maxsize=1)
def default_store() -> BlobStore:
    """Process-wide store built from settings."""
    return BlobStore(
        web_root=settings.web_root,
        uploads_dir=settings.uploads_dir,
        base_url=settings.base_url,
    )
