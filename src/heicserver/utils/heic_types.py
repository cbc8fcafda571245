"""HEIC/HEIF format detection and naming helpers."""

import math
import re
from typing import Any, Iterable, Optional
from urllib.parse import quote

# HEIC MIME types that should be converted
HEIC_MIME_TYPES = (
    "image/heic",
    "image/heif",
    "image/x-heic",
    "image/x-heif",
)

HEIC_EXTENSIONS = (".heic", ".heif")

DEFAULT_OUTPUT_FORMAT = "jpeg"
DEFAULT_QUALITY = 85
DEFAULT_MAX_SIZE = 20 * 1024 * 1024  # 20MB

_OUTPUT_EXTENSIONS = {
    "jpeg": ".jpg",
    "jpg": ".jpg",
    "png": ".png",
    "webp": ".webp",
}

_OUTPUT_MIME_TYPES = {
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}

_HEIC_SUFFIX = re.compile(r"\.(heic|heif)$", re.IGNORECASE)
_UNSAFE_HEADER_CHARS = re.compile(r'[^\x20-\x7e]|["\\]')


def is_heic_file(file: Any, mime_types: Iterable[str] = HEIC_MIME_TYPES) -> bool:
    """
    Check if a file is HEIC/HEIF based on MIME type or extension.

    The MIME type is checked first; the filename extension is only a fallback.

    Args:
        file: Upload record with optional ``mimetype`` and ``originalname``
        mime_types: MIME types treated as HEIC

    Returns:
        True if the file looks like HEIC/HEIF
    """
    if not file:
        return False

    mimetype = getattr(file, "mimetype", None)
    if mimetype and mimetype.lower() in {m.lower() for m in mime_types}:
        return True

    originalname = getattr(file, "originalname", None)
    if originalname:
        return originalname.lower().endswith(HEIC_EXTENSIONS)

    return False


def normalize_format(value: Optional[str]) -> str:
    """Map a short name or MIME-style value (``image/png``) to a short format name."""
    if not value:
        return DEFAULT_OUTPUT_FORMAT

    fmt = value.strip().lower()
    if fmt.startswith("image/"):
        fmt = fmt[len("image/"):]
    return fmt or DEFAULT_OUTPUT_FORMAT


def get_output_extension(format: Optional[str] = DEFAULT_OUTPUT_FORMAT) -> str:
    """Get output file extension for a format, ``.jpg`` when unknown."""
    return _OUTPUT_EXTENSIONS.get(normalize_format(format), ".jpg")


def get_output_mime_type(format: Optional[str] = DEFAULT_OUTPUT_FORMAT) -> str:
    """Get output MIME type for a format, ``image/jpeg`` when unknown."""
    return _OUTPUT_MIME_TYPES.get(normalize_format(format), "image/jpeg")


def generate_converted_filename(
    originalname: Optional[str],
    format: Optional[str] = DEFAULT_OUTPUT_FORMAT,
) -> str:
    """Swap a trailing .heic/.heif for the output extension."""
    extension = get_output_extension(format)
    if not originalname:
        return f"converted{extension}"

    return _HEIC_SUFFIX.sub(extension, originalname)


def parse_quality(value: Any, default: int = DEFAULT_QUALITY) -> int:
    """
    Interpret a quality value sent by a client.

    Whole numbers are used as-is, out-of-range ones included; the encoder
    clamps them. Fractions between 0 and 1 follow the browser canvas
    convention (0.85 means 85). Zero and unparsable values fall back to the
    default.
    """
    if value is None or value == "":
        return default

    try:
        quality = float(value)
    except (TypeError, ValueError):
        return default

    if not math.isfinite(quality):
        return default
    if 0 < quality < 1:
        return int(round(quality * 100))
    return int(quality) or default


def content_disposition(filename: Optional[str]) -> str:
    """
    Attachment header value for a download name.

    The plain ``filename`` parameter is ASCII with quotes and backslashes
    replaced; the full name travels in the RFC 5987 ``filename*`` parameter.
    """
    filename = filename or f"converted{get_output_extension()}"
    fallback = _UNSAFE_HEADER_CHARS.sub("_", filename)

    if fallback == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"
