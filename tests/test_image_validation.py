"""
Tests for image upload validation.

Tests cover:
- Whitelists (extension, content type)
- Check order and first-failure reporting
- Signature check overriding declared metadata
- Stream position preserved after validation
"""

from unittest.mock import patch

import pytest

from blogapi.errors import ValidationRejected
from blogapi.image_validation import (
    ALLOWED_CONTENT_TYPES,
    ALLOWED_EXTENSIONS,
    BAD_CONTENT_TYPE,
    BAD_EXTENSION,
    BAD_SIGNATURE,
    EMPTY,
    SIGNATURE_MISMATCH,
    TOO_LARGE,
    UNREADABLE,
    file_extension,
    validate_image,
)
from blogapi.signatures import ImageKind
from blogapi.uploads import StreamUpload

PNG_10 = bytes([0x89, 0x50, 0x4E, 0x47, 0x0D, 0x0A, 0x1A, 0x0A, 0x00, 0x00])
JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 12
MIB = 1024 * 1024


def _upload(name="photo.png", ctype="image/png", data=PNG_10):
    return StreamUpload.from_bytes(name, ctype, data)


# ============================================================================
# WHITELISTS
# ============================================================================


def test_allowed_extensions():
    """Test that expected extensions are in the whitelist."""
    assert ALLOWED_EXTENSIONS == {".jpg", ".jpeg", ".png", ".gif", ".webp"}


def test_allowed_content_types():
    """Test that expected MIME types are in the whitelist."""
    assert ALLOWED_CONTENT_TYPES == {"image/jpeg", "image/png", "image/gif", "image/webp"}


def test_disallowed_extensions():
    """Test that dangerous extensions are not in the whitelist."""
    for ext in [".exe", ".svg", ".html", ".php", ".js", ".bmp"]:
        assert ext not in ALLOWED_EXTENSIONS


def test_file_extension():
    """Test extension extraction."""
    assert file_extension("photo.PNG") == ".png"
    assert file_extension("archive.tar.gz") == ".gz"
    assert file_extension("noext") == ""
    assert file_extension("") == ""
    assert file_extension(None) == ""


# ============================================================================
# ACCEPTANCE
# ============================================================================


def test_valid_png_accepted():
    """Test the 10-byte PNG buffer is accepted."""
    result = validate_image(_upload())

    assert result.ok is True
    assert result.kind is ImageKind.PNG
    result.raise_for_rejection()  # no-op


def test_uppercase_metadata_accepted():
    """Test that extension and content type are compared lowercase."""
    result = validate_image(_upload(name="PHOTO.JPG", ctype="IMAGE/JPEG", data=JPEG))
    assert result.ok is True


def test_exact_max_size_accepted():
    """Test that a file of exactly max_bytes is accepted."""
    data = PNG_10 + b"\x00" * (100 - len(PNG_10))
    assert validate_image(_upload(data=data), max_bytes=100).ok is True


# ============================================================================
# REJECTIONS
# ============================================================================


def test_none_rejected_as_empty():
    """Test that a missing upload is rejected."""
    result = validate_image(None)
    assert result.ok is False
    assert result.reason == EMPTY


def test_zero_length_rejected_as_empty():
    """Test that a zero-length upload is rejected."""
    assert validate_image(_upload(data=b"")).reason == EMPTY


def test_oversize_rejected_even_with_valid_signature():
    """5 MiB + 1 byte of valid PNG is rejected for size."""
    data = PNG_10 + b"\x00" * (5 * MIB + 1 - len(PNG_10))
    result = validate_image(_upload(data=data), max_bytes=5 * MIB)

    assert result.ok is False
    assert result.reason == TOO_LARGE
    assert str(5 * MIB + 1) in result.message


def test_default_limit_from_settings():
    """Test that max_bytes defaults to settings.max_upload_bytes."""
    with patch("blogapi.image_validation.settings") as mock_settings:
        mock_settings.max_upload_bytes = 5
        assert validate_image(_upload()).reason == TOO_LARGE


def test_exe_extension_rejected():
    """Test that valid PNG bytes named .exe are rejected."""
    result = validate_image(_upload(name="photo.exe"))
    assert result.reason == BAD_EXTENSION
    assert ".exe" in result.message


def test_missing_extension_rejected():
    """Test that a filename without extension is rejected."""
    assert validate_image(_upload(name="photo")).reason == BAD_EXTENSION


def test_bad_content_type_rejected():
    """Test that a non-image content type is rejected."""
    result = validate_image(_upload(ctype="application/octet-stream"))
    assert result.reason == BAD_CONTENT_TYPE


def test_empty_content_type_rejected():
    """Test that a missing content type is rejected."""
    assert validate_image(_upload(ctype="")).reason == BAD_CONTENT_TYPE


def test_png_name_with_jpeg_bytes_rejected():
    """Test that the signature overrides the declared extension."""
    result = validate_image(_upload(data=JPEG))

    assert result.ok is False
    assert result.reason == SIGNATURE_MISMATCH
    assert "JPEG" in result.message


def test_content_type_must_match_signature():
    """Test that image/gif declared on PNG bytes is rejected."""
    result = validate_image(_upload(name="photo.png", ctype="image/gif"))
    assert result.reason == SIGNATURE_MISMATCH


def test_jpeg_accepts_both_extensions():
    """Test that .jpg and .jpeg both match JPEG content."""
    for name in ("a.jpg", "a.jpeg"):
        result = validate_image(_upload(name=name, ctype="image/jpeg", data=JPEG))
        assert result.ok is True
        assert result.kind is ImageKind.JPEG


def test_executable_renamed_to_png_rejected():
    """Test that an executable renamed to .png is caught by the signature check."""
    result = validate_image(_upload(data=b"MZ\x90\x00\x03\x00\x00\x00\x04\x00"))
    assert result.ok is False
    assert result.reason == BAD_SIGNATURE


def test_first_failure_wins():
    """Test that the earliest failing check is the one reported."""
    # Too large AND bad extension AND bad type AND bad signature
    upload = _upload(name="x.exe", ctype="text/plain", data=b"MZ" * 10)
    assert validate_image(upload, max_bytes=5).reason == TOO_LARGE

    # Bad extension AND bad type AND bad signature
    assert validate_image(upload).reason == BAD_EXTENSION

    # Bad type AND bad signature
    upload = _upload(name="x.png", ctype="text/plain", data=b"MZ" * 10)
    assert validate_image(upload).reason == BAD_CONTENT_TYPE


def test_unreadable_content_rejected():
    """Test that a read error during sniffing is a rejection, not a crash."""
    upload = _upload()
    with patch.object(upload, "read", side_effect=OSError("disk gone")):
        result = validate_image(upload)

    assert result.ok is False
    assert result.reason == UNREADABLE


def test_raise_for_rejection():
    """Test that a rejection converts into ValidationRejected."""
    result = validate_image(_upload(name="x.exe"))

    with pytest.raises(ValidationRejected) as exc:
        result.raise_for_rejection()

    assert exc.value.reason == BAD_EXTENSION
    assert exc.value.message == result.message


def test_rejection_is_logged(caplog):
    """Test that rejections log the offending upload metadata."""
    with caplog.at_level("WARNING", logger="blogapi.image_validation"):
        validate_image(_upload(name="evil.exe"))

    record = caplog.records[-1]
    assert record.error_code == "BAD_EXTENSION"
    assert record.upload_filename == "evil.exe"
    assert record.size_bytes == len(PNG_10)


# ============================================================================
# STREAM POSITION
# ============================================================================


def test_validation_does_not_consume_stream():
    """Test that the full content is still readable after validation."""
    upload = _upload()
    assert validate_image(upload).ok is True

    assert upload.tell() == 0
    assert upload.read() == PNG_10


def test_validation_restores_nonzero_position():
    """Test that the original position is restored, not just rewound."""
    upload = _upload()
    upload.seek(3)

    validate_image(upload)

    assert upload.tell() == 3
