"""
Post service: post records and their image attachment lifecycle.

Keeps the stored image file consistent with the post row across:
- attach-on-create: validate -> save file -> insert row (with image columns)
- replace: validate -> save new file -> delete old file -> update row
- detach: delete file -> clear image columns
- cascade delete: delete file -> delete row

Rules:
- Ownership is checked before any file is touched. Missing and
  not-owned posts raise the same NotFoundOrForbidden.
- Validation failures happen before any I/O and change nothing.
- Write failures abort the row mutation (no row points at a file that
  was never stored).
- Delete failures are logged and audited, never raised. The row is the
  source of truth; a leftover file is an ops issue.
- Only local references ("/uploads/...") are ever deleted. External
  image URLs belong to someone else.

Concurrent mutations of the same post are not serialized here; the last
row write wins.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import urlsplit

from . import db
from .audit_log import (
    RequestTimer,
    generate_request_id,
    log_error,
    log_post_event,
    log_rejection,
)
from .errors import NotFoundOrForbidden, StorageWriteFailure, ValidationRejected
from .image_validation import validate_image
from .models import Attachment, Post
from .settings import settings
from .storage import BlobStore, DeleteResult, default_store
from .uploads import Upload

logger = logging.getLogger(__name__)

BAD_REFERENCE = "bad_reference"
EXTERNAL_URL_SCHEMES = {"http", "https"}


def _load_owned(post_id: int, owner_id: str) -> Post:
    row = db.get_owned_post(post_id, owner_id)
    if row is None:
        logger.info("Post not found or not owned", extra={"post_id": post_id})
        raise NotFoundOrForbidden(post_id)
    return Post.from_row(row)


def _check_image(
    image: Upload, request_id: str, session_id: str, post_id: Optional[int] = None
) -> None:
    result = validate_image(image)
    if not result.ok:
        log_rejection(request_id, session_id, result.reason, post_id)
        result.raise_for_rejection()


def _check_external_url(
    url: str, request_id: str, session_id: str, post_id: Optional[int] = None
) -> None:
    # Absolute http(s) only. Bare paths would be opened on the server by st.image,
    # and "/uploads/..." would be mistaken for a file we own
    parts = urlsplit(url)
    if parts.scheme.lower() not in EXTERNAL_URL_SCHEMES or not parts.netloc:
        log_rejection(request_id, session_id, BAD_REFERENCE, post_id)
        raise ValidationRejected(
            BAD_REFERENCE, "Image URL must be an absolute http(s) URL."
        )


def _store_image(
    store: BlobStore,
    image: Upload,
    request_id: str,
    session_id: str,
    post_id: Optional[int] = None,
) -> tuple[Attachment, int]:
    """Save a validated upload; returns the new attachment and save latency."""
    with RequestTimer() as timer:
        try:
            reference = store.save(image, settings.image_subfolder)
        except StorageWriteFailure:
            log_error(request_id, session_id, "IMAGE_SAVE_ERROR", post_id)
            raise
    attachment = Attachment(
        reference=reference,
        original_filename=image.filename,
        content_type=image.content_type,
        size_bytes=image.size,
    )
    return attachment, timer.elapsed_ms


def _discard(
    store: BlobStore,
    reference: str,
    request_id: str,
    session_id: str,
    post_id: Optional[int] = None,
) -> DeleteResult:
    """Best-effort removal of a local file. Failures are recorded, not raised."""
    result = store.delete(reference)
    if result.failed:
        logger.warning(
            "Stored image could not be removed",
            extra={
                "post_id": post_id,
                "reference": reference,
                "error": result.error,
                "error_code": "IMAGE_DELETE_ERROR",
            },
        )
        log_error(request_id, session_id, "IMAGE_DELETE_ERROR", post_id, [reference])
    return result


def _local_refs(store: BlobStore, attachment: Optional[Attachment]) -> list[str]:
    if attachment is not None and store.is_local(attachment.reference):
        return [attachment.reference]
    return []


# ---------------- reads ----------------

def get_post(post_id: int) -> Post:
    """
    Get a post by id.

    Raises:
        NotFoundOrForbidden: if the post doesn't exist
    """
    row = db.get_post(post_id)
    if row is None:
        raise NotFoundOrForbidden(post_id)
    return Post.from_row(row)


def list_posts(limit: int = 100) -> list[Post]:
    """All posts, most recent first."""
    return [Post.from_row(r) for r in db.list_posts(limit)]


def list_my_posts(owner_id: str) -> list[Post]:
    """The caller's own posts, most recent first."""
    return [Post.from_row(r) for r in db.list_posts_by_owner(owner_id)]


def post_response(post: Post, store: Optional[BlobStore] = None) -> dict[str, Any]:
    """
    Public view of a post.

    The image reference is resolved to an absolute URL; the original
    filename is included for display only.
    """
    store = store or default_store()
    a = post.attachment
    return {
        "id": post.id,
        "title": post.title,
        "content": post.content,
        "image_url": store.resolve_url(a.reference) if a else None,
        "image_file_name": a.original_filename if a else None,
        "image_alt_text": post.image_alt_text,
        "image_file_size": a.size_bytes if a else None,
        "created_at": post.created_at,
        "updated_at": post.updated_at,
        "author_id": post.owner_id,
    }


# ---------------- lifecycle ----------------

def create_post(
    owner_id: str,
    title: str,
    content: str,
    *,
    image: Optional[Upload] = None,
    image_url: Optional[str] = None,
    image_alt_text: Optional[str] = None,
    store: Optional[BlobStore] = None,
    session_id: str = "",
) -> Post:
    """
    Create a post, optionally with an uploaded image or an external image URL.

    Order of operations with an upload:
    1. Validate the upload (rejection aborts, nothing is written)
    2. Save the file
    3. Insert the post row with all image columns in one statement
       (on failure the saved file is removed again)

    Args:
        owner_id: Id of the acting user, becomes the post owner
        title: Post title
        content: Post body
        image: Uploaded image, or None
        image_url: External image URL (mutually exclusive with image)
        image_alt_text: Optional alt text
        store: Blob store, defaults to the process-wide store
        session_id: Session ID for audit logging

    Returns:
        The created Post

    Raises:
        ValidationRejected: upload or URL rejected
        StorageWriteFailure: file could not be stored
        ValueError: both image and image_url were given
    """
    if image is not None and image_url:
        raise ValueError("Provide either an uploaded image or an image URL, not both.")

    store = store or default_store()
    request_id = generate_request_id()
    attachment: Optional[Attachment] = None
    latency_ms = 0

    if image is not None:
        _check_image(image, request_id, session_id)
        attachment, latency_ms = _store_image(store, image, request_id, session_id)
    elif image_url:
        _check_external_url(image_url, request_id, session_id)
        attachment = Attachment.foreign(image_url)

    try:
        post_id = db.add_post(title, content, owner_id, attachment, image_alt_text)
    except Exception:
        logger.exception("Failed to insert post", extra={"error_code": "POST_CREATE_ERROR"})
        for reference in _local_refs(store, attachment):
            _discard(store, reference, request_id, session_id)
        raise

    log_post_event(
        "post_create",
        request_id,
        session_id,
        post_id,
        references=_local_refs(store, attachment),
        size_bytes=(attachment.size_bytes or 0) if attachment else 0,
        latency_ms=latency_ms,
    )
    logger.info(
        "Created post",
        extra={"post_id": post_id, "has_image": attachment is not None},
    )
    return get_post(post_id)


def replace_image(
    post_id: int,
    owner_id: str,
    image: Upload,
    *,
    store: Optional[BlobStore] = None,
    session_id: str = "",
) -> Post:
    """
    Attach a new uploaded image to a post, replacing any current one.

    A rejected upload leaves the current image untouched. On acceptance
    the new file is saved first, then the superseded local file is
    deleted, then the row is updated in a single write.

    Raises:
        NotFoundOrForbidden: post missing or not owned by owner_id
        ValidationRejected: upload rejected (post unchanged)
        StorageWriteFailure: new file could not be stored (post unchanged)
    """
    store = store or default_store()
    request_id = generate_request_id()

    post = _load_owned(post_id, owner_id)
    _check_image(image, request_id, session_id, post_id)
    attachment, latency_ms = _store_image(store, image, request_id, session_id, post_id)

    previous = post.attachment
    superseded = _local_refs(store, previous)
    for reference in superseded:
        _discard(store, reference, request_id, session_id, post_id)

    try:
        db.set_attachment(post_id, attachment)
    except Exception:
        logger.exception(
            "Failed to record new image",
            extra={"post_id": post_id, "error_code": "POST_UPDATE_ERROR"},
        )
        _discard(store, attachment.reference, request_id, session_id, post_id)
        raise

    log_post_event(
        "image_replace" if previous is not None else "image_attach",
        request_id,
        session_id,
        post_id,
        references=[attachment.reference] + superseded,
        size_bytes=attachment.size_bytes or 0,
        latency_ms=latency_ms,
    )
    logger.info(
        "Replaced post image" if previous is not None else "Attached post image",
        extra={"post_id": post_id, "reference": attachment.reference},
    )
    return get_post(post_id)


def remove_image(
    post_id: int,
    owner_id: str,
    *,
    store: Optional[BlobStore] = None,
    session_id: str = "",
) -> None:
    """
    Detach the image from a post.

    Local files are deleted (best-effort); external URLs are simply
    forgotten. All image columns are cleared in one write.

    Raises:
        NotFoundOrForbidden: post missing or not owned by owner_id
    """
    store = store or default_store()
    request_id = generate_request_id()

    post = _load_owned(post_id, owner_id)
    if post.attachment is None:
        logger.debug("Post has no image to remove", extra={"post_id": post_id})
        return

    removed = _local_refs(store, post.attachment)
    for reference in removed:
        _discard(store, reference, request_id, session_id, post_id)

    db.set_attachment(post_id, None)

    log_post_event("image_detach", request_id, session_id, post_id, references=removed)
    logger.info("Removed post image", extra={"post_id": post_id})


def update_post(
    post_id: int,
    owner_id: str,
    *,
    title: Optional[str] = None,
    content: Optional[str] = None,
    image_url: Optional[str] = None,
    image_alt_text: Optional[str] = None,
    store: Optional[BlobStore] = None,
    session_id: str = "",
) -> Post:
    """
    Partially update a post. None leaves a field unchanged.

    image_url:
    - a new external URL re-points the image (a superseded local file is
      deleted first)
    - "" removes the image, like remove_image()

    Raises:
        NotFoundOrForbidden: post missing or not owned by owner_id
        ValidationRejected: image_url is not an absolute http(s) URL
    """
    store = store or default_store()
    request_id = generate_request_id()

    post = _load_owned(post_id, owner_id)
    references: list[str] = []
    attachment: Optional[Attachment] = None
    repoint = False

    if image_url is not None:
        current = post.attachment.reference if post.attachment else None
        if image_url != (current or ""):
            if image_url:
                _check_external_url(image_url, request_id, session_id, post_id)
                attachment = Attachment.foreign(image_url)
            repoint = True
            references = _local_refs(store, post.attachment)
            for reference in references:
                _discard(store, reference, request_id, session_id, post_id)

    # Text and image columns go out in a single UPDATE
    db.update_post_fields(
        post_id,
        title=title,
        content=content,
        image_alt_text=image_alt_text,
        attachment=attachment,
        clear_attachment=repoint and attachment is None,
    )

    log_post_event("post_update", request_id, session_id, post_id, references=references)
    logger.info("Updated post", extra={"post_id": post_id})
    return get_post(post_id)


def delete_post(
    post_id: int,
    owner_id: str,
    *,
    store: Optional[BlobStore] = None,
    session_id: str = "",
) -> None:
    """
    Delete a post and its stored image.

    The file goes first so the log reads in order, but the row is deleted
    whether or not the file could be removed.

    Raises:
        NotFoundOrForbidden: post missing or not owned by owner_id
    """
    store = store or default_store()
    request_id = generate_request_id()

    post = _load_owned(post_id, owner_id)
    removed = _local_refs(store, post.attachment)
    for reference in removed:
        _discard(store, reference, request_id, session_id, post_id)

    db.delete_post_row(post_id)

    log_post_event("post_delete", request_id, session_id, post_id, references=removed)
    logger.info("Deleted post", extra={"post_id": post_id})
