"""
Upload interception for automatic HEIC/HEIF conversion.

Runs after the multipart form has been parsed and before the route handler:
HEIC files are converted and replaced in place, everything else passes
through untouched.
"""

import inspect
import logging
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, Optional, Tuple

from fastapi import Request
from starlette.concurrency import run_in_threadpool

from ..config import Config, get_config
from ..models.upload import (
    FieldsUpload,
    ListUpload,
    NoUpload,
    SingleUpload,
    UploadedFile,
    UploadLimitError,
    UploadShape,
    parse_upload,
)
from ..services.error_handler import (
    ErrorDetails,
    ErrorType,
    HeicProcessingError,
    HeicServiceError,
)
from ..services.heic_converter import (
    ConversionOptions,
    ConversionStatsRecord,
    convert_heic_file,
    validate_heic_file,
)
from ..services.stats_service import ConversionStats, get_conversion_stats
from ..services.webhook_service import send_conversion_failure_webhook
from ..utils.heic_types import (
    DEFAULT_MAX_SIZE,
    DEFAULT_OUTPUT_FORMAT,
    DEFAULT_QUALITY,
    HEIC_MIME_TYPES,
    is_heic_file,
)

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[Exception, Optional[Request], Optional[UploadedFile]], Any]
SuccessCallback = Callable[[UploadedFile, UploadedFile, ConversionStatsRecord], Any]


class HeicValidationError(ValueError):
    """A file detected as HEIC failed pre-conversion validation."""


@dataclass(frozen=True)
class HeicMiddlewareConfig:
    """Per-mount settings, defaults overridden by caller options."""
    quality: int = DEFAULT_QUALITY
    max_size: int = DEFAULT_MAX_SIZE
    allowed_mime_types: Tuple[str, ...] = HEIC_MIME_TYPES
    skip_client_converted: bool = True
    output_format: str = DEFAULT_OUTPUT_FORMAT
    on_error: Optional[ErrorCallback] = field(default=None, compare=False)
    on_success: Optional[SuccessCallback] = field(default=None, compare=False)
    enable_stats: bool = False

    def __post_init__(self):
        object.__setattr__(self, "allowed_mime_types", tuple(self.allowed_mime_types))

    @classmethod
    def from_options(cls, **options) -> "HeicMiddlewareConfig":
        """Merge options onto the defaults. Unknown keys raise TypeError."""
        return cls(**options)

    @classmethod
    def from_settings(cls, config: Config, **overrides) -> "HeicMiddlewareConfig":
        """Build from application settings, then apply overrides."""
        options = {
            "quality": config.heic_quality,
            "max_size": config.heic_max_size_bytes,
            "skip_client_converted": config.heic_skip_client_converted,
            "output_format": config.heic_output_format,
            "enable_stats": config.heic_enable_stats,
        }
        options.update(overrides)
        return cls(**options)


@dataclass
class ProcessedFile:
    converted: bool
    file: Optional[UploadedFile]


def is_client_converted(file: UploadedFile) -> bool:
    """
    Guess whether the client already converted this file.

    Any JPEG whose name contains "converted" matches.
    """
    return file.mimetype == "image/jpeg" and "converted" in (file.originalname or "")


async def _invoke_callback(name: str, callback: Callable, *args) -> None:
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning(f"Custom {name} handler failed: {e}")


class HeicMiddleware:
    """Converts HEIC uploads in place before the route handler sees them."""

    def __init__(
        self,
        config: Optional[HeicMiddlewareConfig] = None,
        stats: Optional[ConversionStats] = None,
    ):
        self.config = config or HeicMiddlewareConfig()
        self.stats = stats or get_conversion_stats()

    async def process(self, upload: UploadShape, request: Optional[Request] = None) -> UploadShape:
        """
        Convert every HEIC file in the upload, in upload order.

        Returns the same shape with converted files replaced. Any failure
        aborts the whole upload with HeicProcessingError.
        """
        start_time = time.time()
        current: Optional[UploadedFile] = None

        try:
            if isinstance(upload, NoUpload):
                return upload

            if isinstance(upload, SingleUpload):
                current = upload.file
                processed = await self.process_file(upload.file)
                if processed.converted:
                    upload.file = processed.file
                return upload

            if isinstance(upload, ListUpload):
                for index, item in enumerate(upload.files):
                    current = item
                    processed = await self.process_file(item)
                    if processed.converted:
                        upload.files[index] = processed.file
                return upload

            if isinstance(upload, FieldsUpload):
                for field_name, files in upload.fields.items():
                    if isinstance(files, list):
                        for index, item in enumerate(files):
                            current = item
                            processed = await self.process_file(item)
                            if processed.converted:
                                files[index] = processed.file
                    elif files is not None:
                        current = files
                        processed = await self.process_file(files)
                        if processed.converted:
                            upload.fields[field_name] = processed.file
                return upload

            return upload

        except Exception as error:
            logger.error(f"HEIC middleware error: {error}")

            if self.config.enable_stats:
                original_size = 0
                if current is not None:
                    original_size = current.size or len(current.buffer or b"")
                self.stats.add_conversion(
                    original_size,
                    0,
                    (time.time() - start_time) * 1000,
                    False,
                )

            if self.config.on_error:
                await _invoke_callback("error", self.config.on_error, error, request, current)

            raise HeicProcessingError(error) from error

    async def process_file(self, file: Optional[UploadedFile]) -> ProcessedFile:
        """Convert a single file if it is HEIC, otherwise pass it through."""
        config = self.config

        if not file or not file.buffer:
            return ProcessedFile(converted=False, file=file)

        if not is_heic_file(file, config.allowed_mime_types):
            logger.info(
                f"Skipping non-HEIC file: {file.originalname or 'unknown'} "
                f"({file.mimetype or 'unknown type'})"
            )
            return ProcessedFile(converted=False, file=file)

        if config.skip_client_converted and is_client_converted(file):
            logger.info(f"Skipping client-converted file: {file.originalname}")
            return ProcessedFile(converted=False, file=file)

        logger.info(
            f"Processing HEIC file: {file.originalname or 'unknown'} "
            f"({file.size or len(file.buffer)} bytes)"
        )

        try:
            validation = validate_heic_file(file, config.max_size, config.allowed_mime_types)
            if not validation.valid:
                raise HeicValidationError(validation.error)

            options = ConversionOptions(
                format=config.output_format or DEFAULT_OUTPUT_FORMAT,
                quality=config.quality or DEFAULT_QUALITY,
                progressive=True,
                optimise=True,
            )
            result = await run_in_threadpool(
                convert_heic_file, file, options, config.allowed_mime_types
            )
        except Exception as e:
            logger.error(f"Failed to convert HEIC file {file.originalname or 'unknown'}: {e}")
            raise

        converted_file, stats = result.file, result.stats

        logger.info(
            f"HEIC conversion completed: {file.originalname} -> {converted_file.originalname}, "
            f"{stats.original_size} -> {stats.converted_size} bytes "
            f"({stats.compression_ratio}) in {stats.conversion_time}ms"
        )

        if config.enable_stats:
            self.stats.add_conversion(
                stats.original_size,
                stats.converted_size,
                stats.conversion_time,
                True,
            )

        if config.on_success:
            await _invoke_callback("success", config.on_success, file, converted_file, stats)

        return ProcessedFile(converted=True, file=converted_file)


async def report_heic_failure(
    error: Exception,
    request: Optional[Request] = None,
    file: Optional[UploadedFile] = None,
    target_format: Optional[str] = None,
) -> None:
    """Forward a conversion failure and the failing upload to the error webhook."""
    await send_conversion_failure_webhook(
        error,
        file=file,
        target_format=target_format,
        endpoint=str(request.url.path) if request is not None else None,
        user_agent=request.headers.get("user-agent") if request is not None else None,
    )


def _settings_config() -> HeicMiddlewareConfig:
    settings = get_config()
    reporter = partial(report_heic_failure, target_format=settings.heic_output_format)
    return HeicMiddlewareConfig.from_settings(settings, on_error=reporter)


_heic_middleware: Optional[HeicMiddleware] = None


def get_heic_middleware() -> HeicMiddleware:
    """Get the application-wide middleware built from settings."""
    global _heic_middleware
    if _heic_middleware is None:
        _heic_middleware = HeicMiddleware(_settings_config())
    return _heic_middleware


def heic_upload(
    mode: str = "single",
    field_name: str = "file",
    fields: Optional[Dict[str, int]] = None,
    max_count: Optional[int] = None,
    middleware: Optional[HeicMiddleware] = None,
):
    """
    FastAPI dependency that parses a multipart upload and converts HEIC files.

    Args:
        mode: ``single``, ``array``, ``fields`` or ``any``
        field_name: File field for ``single`` and ``array`` modes
        fields: Field name to max count for ``fields`` mode
        max_count: Maximum files for ``array`` and ``any`` modes
        middleware: Middleware instance, the application-wide one by default

    Returns:
        Dependency resolving to the processed upload shape
    """

    async def dependency(request: Request) -> UploadShape:
        heic = middleware or get_heic_middleware()

        content_type = request.headers.get("content-type", "")
        if not content_type.startswith("multipart/form-data"):
            return await heic.process(NoUpload(), request)

        form = await request.form()
        try:
            upload = await parse_upload(form, mode, field_name, fields, max_count)
        except UploadLimitError as e:
            raise HeicServiceError(ErrorDetails(ErrorType.TOO_MANY_FILES, str(e)))

        return await heic.process(upload, request)

    return dependency

