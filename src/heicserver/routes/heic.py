"""HEIC conversion, support check and statistics endpoints."""

import json
import logging
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from ..config import get_config
from ..middleware.heic import HeicMiddlewareConfig
from ..models.schemas import StatsResponse, SupportResponse
from ..models.upload import UploadedFile
from ..services.error_handler import (
    ErrorDetails,
    ErrorType,
    create_conversion_error,
    create_invalid_file_error,
    error_response,
)
from ..services.heic_converter import (
    ConversionOptions,
    convert_heic_file,
    get_library_info,
    validate_heic_file,
)
from ..services.stats_service import ConversionStats, get_conversion_stats, get_server_load
from ..utils.heic_types import content_disposition, normalize_format, parse_quality

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/heic", tags=["heic"])


def heic_conversion_route(
    config: Optional[HeicMiddlewareConfig] = None,
    stats: Optional[ConversionStats] = None,
):
    """Build the direct conversion endpoint."""

    async def convert_heic(
        file: Optional[UploadFile] = File(None),
        quality: Optional[str] = Form(None),
        output_format: Optional[str] = Form(None, alias="format"),
    ):
        """
        Convert an uploaded HEIC/HEIF image and return the converted bytes.

        Optional form fields ``quality`` (1-100, or a 0-1 fraction) and
        ``format`` (jpeg, png, webp or their MIME types) override the defaults.
        """
        route_config = config or HeicMiddlewareConfig.from_settings(get_config())
        route_stats = stats or get_conversion_stats()

        if file is None:
            return error_response(ErrorDetails(ErrorType.NO_FILE_PROVIDED))

        upload = await UploadedFile.from_upload("file", file)

        validation = validate_heic_file(
            upload, route_config.max_size, route_config.allowed_mime_types
        )
        if not validation.valid:
            return error_response(create_invalid_file_error(validation.error))

        start_time = time.time()

        try:
            options = ConversionOptions(
                format=normalize_format(output_format or route_config.output_format),
                quality=parse_quality(quality, route_config.quality),
                progressive=True,
                optimise=True,
            )
            result = await run_in_threadpool(
                convert_heic_file, upload, options, route_config.allowed_mime_types
            )
            converted_file, conversion_stats = result.file, result.stats

            response = Response(
                content=converted_file.buffer,
                media_type=converted_file.mimetype,
                headers={
                    "Content-Length": str(converted_file.size),
                    "Content-Disposition": content_disposition(converted_file.originalname),
                    "X-Conversion-Stats": json.dumps(conversion_stats.to_dict()),
                },
            )
        except Exception as e:
            logger.error(f"HEIC conversion endpoint error: {e}")

            if route_config.enable_stats:
                route_stats.add_conversion(
                    upload.size or 0,
                    0,
                    (time.time() - start_time) * 1000,
                    False,
                )

            return error_response(create_conversion_error(e))

        if route_config.enable_stats:
            route_stats.add_conversion(
                conversion_stats.original_size,
                conversion_stats.converted_size,
                conversion_stats.conversion_time,
                True,
            )

        return response

    return convert_heic


def heic_support_route():
    """Build the HEIC capability endpoint."""

    async def heic_support():
        """Report whether HEIF input is supported, with library versions."""
        try:
            info = get_library_info()
            if info is None:
                raise RuntimeError("Image library information unavailable")

            formats = info["formats"]
            return SupportResponse(
                supported=bool(formats["heif"]["input"]),
                pillowVersion=info["pillowVersion"],
                pillowHeifVersion=info["pillowHeifVersion"],
                libheifVersion=info["libheifVersion"],
                formats=formats,
            )
        except Exception as e:
            logger.error(f"HEIC support check failed: {e}")
            return JSONResponse(
                status_code=500,
                content={
                    "supported": False,
                    "error": "Failed to check HEIC support",
                    "details": str(e),
                },
            )

    return heic_support


def heic_stats_route(stats: Optional[ConversionStats] = None):
    """Build the conversion statistics endpoint."""

    async def heic_stats() -> StatsResponse:
        """
        Get conversion statistics since process start.

        ``conversionsToday`` mirrors ``conversions``; both count since start-up.
        """
        snapshot = (stats or get_conversion_stats()).get_stats()
        return StatsResponse(
            **snapshot,
            serverLoad=get_server_load(snapshot),
            conversionsToday=snapshot["conversions"],
            averageConversionTime=snapshot["averageTime"],
        )

    return heic_stats


router.add_api_route("/convert", heic_conversion_route(), methods=["POST"])
router.add_api_route(
    "/support",
    heic_support_route(),
    methods=["GET"],
    response_model=SupportResponse,
)
router.add_api_route(
    "/stats",
    heic_stats_route(),
    methods=["GET"],
    response_model=StatsResponse,
)


@router.post("/stats/reset")
async def reset_stats() -> Dict[str, Any]:
    """
    Reset conversion statistics.

    Only available outside production.
    """
    config = get_config()
    if not config.debug and config.is_production:
        return error_response(
            ErrorDetails(ErrorType.NOT_FOUND, "Endpoint not available in production mode")
        )

    get_conversion_stats().reset()
    logger.info("Conversion statistics reset by admin request")

    return {"status": "stats_reset", "message": "Conversion statistics have been reset"}
