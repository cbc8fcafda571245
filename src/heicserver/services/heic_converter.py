"""
HEIC/HEIF conversion service.

Decodes HEIC/HEIF buffers through Pillow (with the pillow-heif opener) and
re-encodes them as JPEG, PNG or WebP.
"""

import logging
import time
from dataclasses import dataclass, replace
from io import BytesIO
from typing import Any, Dict, Iterable, Optional

import PIL
from PIL import Image, ImageOps

from ..models.upload import UploadedFile
from ..utils.heic_types import (
    DEFAULT_MAX_SIZE,
    DEFAULT_OUTPUT_FORMAT,
    DEFAULT_QUALITY,
    HEIC_MIME_TYPES,
    generate_converted_filename,
    get_output_mime_type,
    is_heic_file,
    normalize_format,
)

logger = logging.getLogger(__name__)

# Try to import HEIC support
try:
    import pillow_heif
    pillow_heif.register_heif_opener()
    HEIC_SUPPORTED = True
except ImportError:
    pillow_heif = None
    HEIC_SUPPORTED = False
    logger.warning("HEIC support not available. Install pillow-heif to decode iPhone photos.")

MIN_QUALITY = 10
MAX_QUALITY = 100
PNG_COMPRESSION_LEVEL = 6
WEBP_EFFORT = 4


class HeicConversionError(Exception):
    """HEIC decode/encode or precondition failure."""


@dataclass
class ConversionOptions:
    """Encoder settings for a conversion."""
    format: str = DEFAULT_OUTPUT_FORMAT
    quality: int = DEFAULT_QUALITY
    progressive: bool = True
    optimise: bool = True


@dataclass
class ConversionStatsRecord:
    """Size and timing of one conversion."""
    original_size: int
    converted_size: int
    conversion_time: int
    format: str

    @property
    def compression_ratio(self) -> str:
        if not self.original_size:
            return "0.0%"
        return f"{(1 - self.converted_size / self.original_size) * 100:.1f}%"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originalSize": self.original_size,
            "convertedSize": self.converted_size,
            "conversionTime": self.conversion_time,
            "compressionRatio": self.compression_ratio,
        }


@dataclass
class ConversionResult:
    buffer: bytes
    stats: ConversionStatsRecord


@dataclass
class FileConversionResult:
    file: UploadedFile
    stats: ConversionStatsRecord


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None


def clamp_quality(quality: Any) -> int:
    """Clamp quality into the encoder range [10, 100]."""
    try:
        quality = int(quality)
    except (TypeError, ValueError):
        quality = DEFAULT_QUALITY
    return max(MIN_QUALITY, min(MAX_QUALITY, quality))


def _save_options(fmt: str, options: ConversionOptions) -> Dict[str, Any]:
    quality = clamp_quality(options.quality)

    if fmt in ("jpeg", "jpg"):
        return {
            "format": "JPEG",
            "quality": quality,
            "progressive": options.progressive,
            "optimize": options.optimise,
        }
    if fmt == "png":
        # PNG is lossless; quality does not apply
        return {
            "format": "PNG",
            "optimize": options.optimise,
            "compress_level": PNG_COMPRESSION_LEVEL,
        }
    if fmt == "webp":
        return {
            "format": "WEBP",
            "quality": quality,
            "method": WEBP_EFFORT,
        }
    raise HeicConversionError(f"Unsupported output format: {options.format}")


def _prepare_image(image: Image.Image, fmt: str) -> Image.Image:
    image = ImageOps.exif_transpose(image)

    if fmt in ("jpeg", "jpg") and image.mode not in ("RGB", "L"):
        if image.mode in ("RGBA", "LA"):
            # Create white background for transparent images
            background = Image.new("RGB", image.size, (255, 255, 255))
            background.paste(image, mask=image.getchannel("A"))
            return background
        return image.convert("RGB")

    return image


def convert_heic_buffer(
    buffer: bytes,
    options: Optional[ConversionOptions] = None,
) -> ConversionResult:
    """
    Convert a HEIC/HEIF buffer to the target format.

    Args:
        buffer: Raw HEIC/HEIF bytes
        options: Target format and encoder settings

    Returns:
        ConversionResult with the encoded bytes and size/timing stats

    Raises:
        HeicConversionError: Unsupported format, or decode/encode failure
    """
    options = options or ConversionOptions()
    fmt = normalize_format(options.format)
    save_options = _save_options(fmt, options)

    original_size = len(buffer or b"")
    start_time = time.time()

    try:
        logger.info(f"Starting HEIC conversion to {fmt} with quality {clamp_quality(options.quality)}")

        with Image.open(BytesIO(buffer)) as image:
            image.load()
            prepared = _prepare_image(image, fmt)
            output_buffer = BytesIO()
            prepared.save(output_buffer, **save_options)

        converted = output_buffer.getvalue()
        conversion_time = int((time.time() - start_time) * 1000)

    except Exception as e:
        conversion_time = int((time.time() - start_time) * 1000)
        logger.error(
            f"HEIC conversion failed: {str(e)} "
            f"(format={fmt}, quality={options.quality}, "
            f"original_size={original_size}, conversion_time={conversion_time}ms)"
        )
        raise HeicConversionError(f"HEIC conversion failed: {str(e)}") from e

    stats = ConversionStatsRecord(
        original_size=original_size,
        converted_size=len(converted),
        conversion_time=conversion_time,
        format=fmt,
    )

    logger.info(
        f"HEIC conversion completed: {fmt}, "
        f"{stats.original_size} -> {stats.converted_size} bytes "
        f"({stats.compression_ratio} reduction) in {conversion_time}ms"
    )

    return ConversionResult(buffer=converted, stats=stats)


def convert_heic_file(
    file: Optional[UploadedFile],
    options: Optional[ConversionOptions] = None,
    mime_types: Iterable[str] = HEIC_MIME_TYPES,
) -> FileConversionResult:
    """
    Convert an uploaded HEIC file into a new file record.

    Fields other than buffer, mimetype, originalname and size are carried over.
    """
    if not file or not file.buffer:
        raise HeicConversionError("No file buffer provided for conversion")

    if not is_heic_file(file, mime_types):
        raise HeicConversionError("File is not in HEIC/HEIF format")

    options = options or ConversionOptions()
    result = convert_heic_buffer(file.buffer, options)

    fmt = normalize_format(options.format)
    converted_file = replace(
        file,
        buffer=result.buffer,
        mimetype=get_output_mime_type(fmt),
        originalname=generate_converted_filename(file.originalname, fmt),
        size=len(result.buffer),
    )

    return FileConversionResult(file=converted_file, stats=result.stats)


def validate_heic_file(
    file: Optional[UploadedFile],
    max_size: int = DEFAULT_MAX_SIZE,
    mime_types: Iterable[str] = HEIC_MIME_TYPES,
) -> ValidationResult:
    """Check an upload before conversion. The first failing check wins."""
    if not file:
        return ValidationResult(False, "No file provided")

    if not file.buffer:
        return ValidationResult(False, "File buffer is empty")

    if file.size and file.size > max_size:
        max_size_mb = round(max_size / (1024 * 1024))
        return ValidationResult(False, f"File size exceeds {max_size_mb}MB limit")

    if not is_heic_file(file, mime_types):
        return ValidationResult(False, "File is not in HEIC/HEIF format")

    return ValidationResult(True)


def _format_support(pillow_format: str) -> Dict[str, Any]:
    return {
        "id": pillow_format.lower(),
        "input": pillow_format in Image.OPEN,
        "output": pillow_format in Image.SAVE,
    }


def get_library_info() -> Optional[Dict[str, Any]]:
    """Get image library versions and per-format capabilities."""
    try:
        Image.init()
        return {
            "pillowVersion": PIL.__version__,
            "pillowHeifVersion": pillow_heif.__version__ if pillow_heif else None,
            "libheifVersion": pillow_heif.libheif_version() if pillow_heif else None,
            "formats": {
                "heif": _format_support("HEIF"),
                "jpeg": _format_support("JPEG"),
                "png": _format_support("PNG"),
                "webp": _format_support("WEBP"),
            },
        }
    except Exception as e:
        logger.error(f"Could not query image library info: {e}")
        return None
