"""
Image signature (magic number) detection.

Design decisions:
- Pure byte matching: no libmagic, no decoding, no I/O
- Independent of declared metadata: extension and Content-Type can be
  spoofed (malicious.exe -> photo.jpg), leading bytes cannot
- Small fixed table: only the formats we accept for post images

Known laxness:
- WEBP is detected from the RIFF container header alone. The "WEBP"
  FourCC at offset 8 is not checked, so any RIFF file (WAV, AVI) is
  classified as WEBP.
"""

from __future__ import annotations

from enum import Enum

# Bytes needed to tell every supported format apart
SIGNATURE_LENGTH = 8

JPEG_MAGIC = b"\xff\xd8\xff"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
GIF_MAGIC = b"GIF8"
RIFF_MAGIC = b"RIFF"


class ImageKind(str, Enum):
    """Image formats recognised by their leading bytes."""

    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"
    WEBP = "webp"
    UNKNOWN = "unknown"


def _is_jpeg(head: bytes) -> bool:
    return head[:3] == JPEG_MAGIC


def _is_png(head: bytes) -> bool:
    return head[:8] == PNG_MAGIC


def _is_gif(head: bytes) -> bool:
    # GIF87a / GIF89a
    return len(head) >= 6 and head[:4] == GIF_MAGIC and head[4] in (0x37, 0x39) and head[5] == 0x61


def _is_webp(head: bytes) -> bool:
    return head[:4] == RIFF_MAGIC


_CHECKS = (
    (ImageKind.JPEG, _is_jpeg),
    (ImageKind.PNG, _is_png),
    (ImageKind.GIF, _is_gif),
    (ImageKind.WEBP, _is_webp),
)


def sniff_image(head: bytes) -> ImageKind:
    """
    Classify content by its leading bytes.

    Args:
        head: At least the first SIGNATURE_LENGTH bytes of the content
            (shorter buffers are accepted but may not match anything)

    Returns:
        The detected ImageKind, or ImageKind.UNKNOWN
    """
    head = bytes(head or b"")
    for kind, check in _CHECKS:
        if check(head):
            return kind
    return ImageKind.UNKNOWN
