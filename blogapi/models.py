"""Domain types for posts and their image attachments."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class Attachment:
    """
    Image metadata embedded in a post.

    Local attachments carry all four fields. Foreign attachments (an
    external image URL) only carry the reference.
    """

    reference: str
    original_filename: Optional[str] = None
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None

    @classmethod
    def foreign(cls, url: str) -> Attachment:
        return cls(reference=url)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Optional[Attachment]:
        if not row["image_url"]:
            return None
        return cls(
            reference=row["image_url"],
            original_filename=row["image_file_name"],
            content_type=row["image_content_type"],
            size_bytes=row["image_file_size"],
        )


@dataclass(frozen=True)
class Post:
    """A blog post as read from the record store."""

    id: int
    title: str
    content: str
    owner_id: str
    attachment: Optional[Attachment]
    image_alt_text: Optional[str]
    created_at: str
    updated_at: str

    @property
    def has_image(self) -> bool:
        return self.attachment is not None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Post:
        return cls(
            id=int(row["id"]),
            title=row["title"],
            content=row["content"],
            owner_id=row["owner_id"],
            attachment=Attachment.from_row(row),
            image_alt_text=row["image_alt_text"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
