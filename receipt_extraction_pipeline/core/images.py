"""
Image precondition checks and MIME sniffing.

The validator is strict and raises ImageValidationError; the MIME detector
never fails and falls back to JPEG. Both read only the leading bytes of the
image, and the base64 paths estimate the decoded size from the encoded length
instead of decoding the whole payload.
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import ImageValidationError
from .utils import DEFAULT_MIME_TYPE, strip_data_uri

MAX_IMAGE_SIZE_BYTES = 50 * 1024 * 1024  # 50 MiB per image

# Enough base64 characters to recover the longest signature (12 bytes)
FORMAT_PREFIX_CHARS = 20
MIME_PREFIX_CHARS = 16

_MIB = 1024 * 1024


@dataclass(frozen=True)
class ImageSignature:
    """Magic bytes identifying one image format."""
    name: str
    mime: str
    parts: Tuple[Tuple[int, bytes], ...]
    min_length: int
    supported: bool = True

    def matches(self, data: bytes) -> bool:
        if len(data) < self.min_length:
            return False
        return all(data[offset:offset + len(magic)] == magic for offset, magic in self.parts)


# Checked in order. Unsupported entries are only used for MIME detection.
IMAGE_SIGNATURES = (
    ImageSignature("PNG", "image/png", ((0, b"\x89PNG"),), 4),
    ImageSignature("JPEG", "image/jpeg", ((0, b"\xff\xd8\xff"),), 3),
    ImageSignature("GIF", "image/gif", ((0, b"GIF"),), 3),
    ImageSignature("WEBP", "image/webp", ((0, b"RIFF"), (8, b"WEBP")), 12),
    ImageSignature("BMP", "image/bmp", ((0, b"BM"),), 2, supported=False),
)

SUPPORTED_FORMATS = "PNG, JPEG, WEBP, non-animated GIF"


def match_signature(data: bytes, supported_only: bool = True) -> Optional[ImageSignature]:
    """Return the first signature matching the leading bytes of data."""
    for signature in IMAGE_SIGNATURES:
        if supported_only and not signature.supported:
            continue
        if signature.matches(data):
            return signature
    return None


def _size_message(size: int, approximate: bool = False) -> str:
    marker = "~" if approximate else ""
    return (f"image size {marker}{size} bytes ({size / _MIB:.2f} MB) exceeds limit of "
            f"{MAX_IMAGE_SIZE_BYTES} bytes ({MAX_IMAGE_SIZE_BYTES / _MIB:.2f} MB)")


def validate_size(data: bytes) -> None:
    """Reject empty images and images above MAX_IMAGE_SIZE_BYTES."""
    size = len(data)
    if size == 0:
        raise ImageValidationError("image_data", "image data is empty")
    if size > MAX_IMAGE_SIZE_BYTES:
        raise ImageValidationError("image_size", _size_message(size))


def validate_format(data: bytes) -> None:
    """Reject anything that is not PNG, JPEG, GIF or WEBP."""
    if len(data) < 4:
        raise ImageValidationError("image_format", "image data too short to determine format")
    if match_signature(data) is None:
        raise ImageValidationError(
            "image_format", f"unsupported image format. Supported formats: {SUPPORTED_FORMATS}")


def validate_image(data: bytes) -> None:
    """Run the size check, then the format check."""
    validate_size(data)
    validate_format(data)


def estimate_decoded_size(b64_data: str) -> int:
    """
    Estimate the decoded size of base64 data without decoding it.

    A data URI header, if present, is not counted. Trailing "=" padding
    characters are subtracted from the 3/4 ratio.
    """
    payload = strip_data_uri(b64_data)
    padding = 0
    if payload.endswith("=="):
        padding = 2
    elif payload.endswith("="):
        padding = 1
    return len(payload) * 3 // 4 - padding


def validate_size_from_base64(b64_data: str) -> None:
    if not b64_data:
        raise ImageValidationError("image_data", "base64 image data is empty")
    decoded_size = estimate_decoded_size(b64_data)
    if decoded_size > MAX_IMAGE_SIZE_BYTES:
        raise ImageValidationError("image_size", _size_message(decoded_size, approximate=True))


def validate_base64(b64_data: str) -> None:
    """
    Validate base64 image data (raw or data URI).

    Only the first FORMAT_PREFIX_CHARS characters are decoded, which is enough
    for the magic-byte check.
    """
    validate_size_from_base64(b64_data)

    prefix = strip_data_uri(b64_data)[:FORMAT_PREFIX_CHARS]
    try:
        decoded = base64.b64decode(prefix, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageValidationError("image_data", f"invalid base64 encoding: {e}") from e

    validate_format(decoded)


def detect_mime_type(b64_data: str) -> str:
    """
    Best-effort MIME type of base64 image data.

    Never raises: short, undecodable or unrecognized data is reported as JPEG,
    since request construction always needs some type.
    """
    if len(b64_data) < FORMAT_PREFIX_CHARS:
        return DEFAULT_MIME_TYPE
    try:
        decoded = base64.b64decode(b64_data[:MIME_PREFIX_CHARS], validate=True)
    except (binascii.Error, ValueError):
        return DEFAULT_MIME_TYPE
    if len(decoded) < 4:
        return DEFAULT_MIME_TYPE

    signature = match_signature(decoded, supported_only=False)
    return signature.mime if signature else DEFAULT_MIME_TYPE


def identify_format(data: bytes) -> str:
    """Human-readable format name for log lines."""
    if len(data) < 4:
        return "Unknown format"
    signature = match_signature(data)
    return signature.name if signature else "Unknown/Unsupported"


def describe_size(data: bytes) -> str:
    """Human-readable size relative to the limit, for log lines."""
    size = len(data)
    percentage = size / MAX_IMAGE_SIZE_BYTES * 100
    return f"Size: {size / _MIB:.2f} MB / {MAX_IMAGE_SIZE_BYTES / _MIB:.0f} MB ({percentage:.1f}% of limit)"
