"""
Utility functions and constants for receipt processing.
"""

import base64
from typing import Optional

DEFAULT_MIME_TYPE = "image/jpeg"

DATA_URI_PREFIX = "data:"
REMOTE_URL_PREFIXES = ("http://", "https://")


def normalize_amount(s: str) -> Optional[float]:
    """Normalize amount string to float."""
    if not s:
        return None
    s = s.replace(",", "").replace(" ", "")
    try:
        return float(s)
    except ValueError:
        return None


def strip_data_uri(data: str) -> str:
    """Return the encoded payload of a data URI, or the input unchanged."""
    if len(data) > len(DATA_URI_PREFIX) and data.startswith(DATA_URI_PREFIX):
        comma = data.find(",")
        if comma != -1:
            return data[comma + 1:]
    return data


def is_data_uri(data: str) -> bool:
    return len(data) > len(DATA_URI_PREFIX) and data.startswith(DATA_URI_PREFIX)


def is_remote_url(source: str) -> bool:
    """Check whether an image source is an http(s) URL rather than base64 data."""
    return len(source) > 8 and source.startswith(REMOTE_URL_PREFIXES)


def encode_image_to_base64(image_bytes: bytes) -> str:
    return base64.b64encode(image_bytes).decode("ascii")


def prepare_image_data_uri(b64_data: str, mime_type: str = "") -> str:
    """Wrap base64 image data into a data URI."""
    return f"data:{mime_type or DEFAULT_MIME_TYPE};base64,{b64_data}"
