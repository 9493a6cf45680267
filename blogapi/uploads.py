"""
Upload capability objects.

Everything downstream (validation, storage) only needs a filename, a
declared content type, a length, and a readable stream that can be
rewound. StreamUpload wraps any seekable binary stream to provide that,
whether the bytes live in memory, in a temp file, or in a Streamlit
UploadedFile (itself a BytesIO).
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Protocol


class Upload(Protocol):
    """Minimal interface every upload source must satisfy."""

    filename: str
    content_type: str
    size: int

    def read(self, n: int = -1) -> bytes: ...

    def seek(self, offset: int) -> int: ...

    def tell(self) -> int: ...


@dataclass
class StreamUpload:
    """An uploaded file backed by a seekable binary stream."""

    filename: str
    content_type: str
    size: int
    stream: BinaryIO

    def read(self, n: int = -1) -> bytes:
        return self.stream.read(n)

    def seek(self, offset: int) -> int:
        return self.stream.seek(offset)

    def tell(self) -> int:
        return self.stream.tell()

    @classmethod
    def from_bytes(cls, filename: str, content_type: str, data: bytes) -> StreamUpload:
        """Wrap an in-memory buffer."""
        return cls(
            filename=filename or "",
            content_type=content_type or "",
            size=len(data),
            stream=io.BytesIO(data),
        )

    @classmethod
    def from_file(cls, filename: str, content_type: str, fh: BinaryIO) -> StreamUpload:
        """
        Wrap an open binary file handle (e.g. a spooled temp file).

        The length is measured by seeking to the end, which also counts
        bytes still in the handle's write buffer. The handle is rewound
        to the start.
        """
        fh.seek(0, io.SEEK_END)
        size = fh.tell()
        fh.seek(0)
        return cls(filename=filename or "", content_type=content_type or "", size=size, stream=fh)

    @classmethod
    def from_path(cls, path: Path, content_type: str) -> StreamUpload:
        """Open a file on disk as an upload. Caller closes ``upload.stream``."""
        path = Path(path)
        return cls.from_file(path.name, content_type, open(path, "rb"))

    @classmethod
    def from_streamlit(cls, uploaded: Any) -> StreamUpload:
        """
        Adapt a Streamlit UploadedFile.

        UploadedFile exposes ``name``, ``type`` and ``size`` and is itself a
        BytesIO, so it is used directly as the stream.
        """
        uploaded.seek(0)
        return cls(
            filename=uploaded.name or "",
            content_type=uploaded.type or "",
            size=int(uploaded.size),
            stream=uploaded,
        )
