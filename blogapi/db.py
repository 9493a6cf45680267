"""
Database layer for post persistence.

Design decisions:
- SQLite for simplicity (no external DB server required)
- Row factory for dict-like access to results
- INTEGER PRIMARY KEY AUTOINCREMENT: post ids are never reused, so a stale
  id can't silently target a newer post
- Attachment columns live on the post row, so attaching, replacing and
  clearing an image is always a single-row write
- ISO 8601 timestamps in UTC for consistency

Tables:
- posts: title/content, owner, image attachment columns

For production, consider:
- PostgreSQL with a row version column for optimistic concurrency
- Migrations (alembic)
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Optional

from .models import Attachment
from .settings import SQLITE_PATH


def _utcnow() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def connect() -> sqlite3.Connection:
    """
    Create a database connection with proper configuration.

    Configuration:
    - check_same_thread=False: Allows use from Streamlit's threading model
    - row_factory=sqlite3.Row: Dict-like access to query results
    """
    SQLITE_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(SQLITE_PATH), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    """
    Initialize database schema.

    Idempotent: safe to call multiple times.
    """
    conn = connect()
    cur = conn.cursor()

    cur.execute(
        """
    CREATE TABLE IF NOT EXISTS posts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        content TEXT NOT NULL,
        owner_id TEXT NOT NULL,
        image_url TEXT,
        image_file_name TEXT,
        image_content_type TEXT,
        image_file_size INTEGER,
        image_alt_text TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """
    )

    cur.execute("CREATE INDEX IF NOT EXISTS idx_posts_owner_id ON posts(owner_id);")

    conn.commit()
    conn.close()


# ---------------- posts ----------------

def add_post(
    title: str,
    content: str,
    owner_id: str,
    attachment: Optional[Attachment] = None,
    image_alt_text: Optional[str] = None,
) -> int:
    """
    Insert a post, attachment columns included, in one statement.

    Args:
        title: Post title
        content: Post body
        owner_id: Opaque id of the owning user
        attachment: Image attachment, or None
        image_alt_text: Optional alt text for the image

    Returns:
        Generated post id
    """
    now = _utcnow()
    a = attachment
    conn = connect()
    cur = conn.execute(
        """
        INSERT INTO posts(title, content, owner_id, image_url, image_file_name,
                          image_content_type, image_file_size, image_alt_text,
                          created_at, updated_at)
        VALUES (?,?,?,?,?,?,?,?,?,?)
        """,
        (
            title,
            content,
            owner_id,
            a.reference if a else None,
            a.original_filename if a else None,
            a.content_type if a else None,
            a.size_bytes if a else None,
            image_alt_text,
            now,
            now,
        ),
    )
    conn.commit()
    post_id = int(cur.lastrowid)
    conn.close()
    return post_id


def get_post(post_id: int):
    """
    Get a single post by id.

    Returns:
        Post Row or None if not found
    """
    conn = connect()
    row = conn.execute("SELECT * FROM posts WHERE id=?", (post_id,)).fetchone()
    conn.close()
    return row


def get_owned_post(post_id: int, owner_id: str):
    """
    Get a post only if it belongs to owner_id.

    Returns:
        Post Row, or None if missing or owned by someone else
    """
    conn = connect()
    row = conn.execute(
        "SELECT * FROM posts WHERE id=? AND owner_id=?", (post_id, owner_id)
    ).fetchone()
    conn.close()
    return row


def list_posts(limit: int = 100):
    """List posts, most recent first."""
    conn = connect()
    rows = conn.execute(
        "SELECT * FROM posts ORDER BY created_at DESC, id DESC LIMIT ?", (limit,)
    ).fetchall()
    conn.close()
    return rows


def list_posts_by_owner(owner_id: str):
    """List one owner's posts, most recent first."""
    conn = connect()
    rows = conn.execute(
        "SELECT * FROM posts WHERE owner_id=? ORDER BY created_at DESC, id DESC",
        (owner_id,),
    ).fetchall()
    conn.close()
    return rows


_ATTACHMENT_COLUMNS = ("image_url", "image_file_name", "image_content_type", "image_file_size")


def _attachment_values(a: Optional[Attachment]) -> tuple:
    if a is None:
        return (None, None, None, None)
    return (a.reference, a.original_filename, a.content_type, a.size_bytes)


def update_post_fields(
    post_id: int,
    title: Optional[str] = None,
    content: Optional[str] = None,
    image_alt_text: Optional[str] = None,
    attachment: Optional[Attachment] = None,
    clear_attachment: bool = False,
) -> None:
    """
    Update a post in one statement. None leaves a field unchanged.

    Args:
        attachment: New attachment, written to all four image columns
        clear_attachment: Null all four image columns (ignored if
            attachment is given)
    """
    sets = ["updated_at=?"]
    params: list = [_utcnow()]
    if title is not None:
        sets.append("title=?")
        params.append(title)
    if content is not None:
        sets.append("content=?")
        params.append(content)
    if image_alt_text is not None:
        sets.append("image_alt_text=?")
        params.append(image_alt_text)
    if attachment is not None or clear_attachment:
        sets.extend(f"{col}=?" for col in _ATTACHMENT_COLUMNS)
        params.extend(_attachment_values(attachment))
    params.append(post_id)

    conn = connect()
    conn.execute(f"UPDATE posts SET {', '.join(sets)} WHERE id=?", params)
    conn.commit()
    conn.close()


def set_attachment(post_id: int, attachment: Optional[Attachment]) -> None:
    """
    Write all four attachment columns at once.

    Passing None clears the attachment.
    """
    conn = connect()
    conn.execute(
        """
        UPDATE posts
        SET image_url=?, image_file_name=?, image_content_type=?, image_file_size=?,
            updated_at=?
        WHERE id=?
        """,
        (*_attachment_values(attachment), _utcnow(), post_id),
    )
    conn.commit()
    conn.close()


def delete_post_row(post_id: int) -> None:
    """
    Delete a post row.

    Note: This only removes the database record. To also remove the stored
    image, use posts.delete_post().
    """
    conn = connect()
    conn.execute("DELETE FROM posts WHERE id=?", (post_id,))
    conn.commit()
    conn.close()
