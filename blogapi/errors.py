"""
Failure types for the image attachment lifecycle.

Delete failures are deliberately absent: the blob store reports them as a
DeleteResult (see storage.py) that callers log but never raise.
"""

from __future__ import annotations


class AttachmentError(Exception):
    """Base class for lifecycle failures surfaced to callers."""

    retryable = False


class ValidationRejected(AttachmentError):
    """The upload failed validation. Nothing was stored or modified."""

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message


class NotFoundOrForbidden(AttachmentError):
    """
    The post does not exist or is not owned by the caller.

    Both cases share one error so existence is not leaked.
    """

    def __init__(self, post_id: int):
        super().__init__(f"Post {post_id} not found")
        self.post_id = post_id


class StorageWriteFailure(AttachmentError):
    """Writing the blob failed. Any partial file was removed first."""

    retryable = True
