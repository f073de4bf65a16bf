"""Image file helpers: eligibility, key scheme, content types and metadata."""

import os
from typing import Any, Dict

from PIL import Image


ELIGIBLE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp")

CONTENT_TYPES = {
    ".png": "image/png",
    ".webp": "image/webp",
}
DEFAULT_CONTENT_TYPE = "image/jpeg"


def is_eligible_image(file_name: str) -> bool:
    """True when the file name carries an allowed image extension (any case)."""
    return file_name.lower().endswith(ELIGIBLE_EXTENSIONS)


def resolve_content_type(file_name: str) -> str:
    """
    Map a file extension to the Content-Type sent to S3.

    Anything that is not PNG or WebP is uploaded as JPEG.
    """
    ext = os.path.splitext(file_name)[1].lower()
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


def calculate_object_key(username: str, event_id: str, file_name: str) -> str:
    """
    Calculate the S3 key for a selection image.

    Args:
        username: Owner of the selection
        event_id: Event the selection belongs to
        file_name: Local file name, kept verbatim

    Returns:
        Key of the form ``{username}/{event_id}/selection/{file_name}``
    """
    return f"{username}/{event_id}/selection/{file_name}"


def derive_image_name(file_name: str) -> str:
    """Strip the final extension: ``"a.b.png"`` -> ``"a.b"``."""
    return os.path.splitext(os.path.basename(file_name))[0]


def extract_image_metadata(path: str) -> Dict[str, Any]:
    """
    Read intrinsic metadata from an image file header.

    Pillow opens images lazily, so only the header is parsed; pixel data is
    never decoded.

    Args:
        path: Path to the image file

    Returns:
        Dictionary with width, height, format (lower-case) and size_bytes
    """
    with Image.open(path) as image:
        width, height = image.size
        image_format = (image.format or "").lower() or None

    return {
        "width": width,
        "height": height,
        "format": image_format,
        "size_bytes": os.path.getsize(path),
    }
