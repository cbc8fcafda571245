"""Health check endpoints for the HEIC conversion service."""

import logging

from fastapi import APIRouter, HTTPException

from ..config import get_config
from ..models.schemas import HealthResponse
from ..services.stats_service import get_conversion_stats, get_server_load
from ..services.webhook_service import send_error_webhook

logger = logging.getLogger(__name__)
config = get_config()

router = APIRouter(prefix="/api/v1", tags=["health"])

API_VERSION = "1.0.0"


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Check the health status of the conversion pipeline.

    Returns the overall status, HEIC decoder availability and current load.
    """
    services_status = {}

    try:
        from ..services.heic_converter import HEIC_SUPPORTED
        services_status["image_processor"] = True
        services_status["heic_support"] = HEIC_SUPPORTED
    except Exception as e:
        logger.error(f"Image processor health check failed: {e}")
        services_status["image_processor"] = False
        services_status["heic_support"] = False

    try:
        stats = get_conversion_stats().get_stats()
        services_status["conversions"] = stats["conversions"]
        services_status["server_load"] = get_server_load(stats)
    except Exception as e:
        logger.error(f"Statistics health check failed: {e}")
        services_status["server_load"] = "unknown"

    all_healthy = services_status["image_processor"] and services_status["heic_support"]

    return HealthResponse(
        status="healthy" if all_healthy else "degraded",
        version=API_VERSION,
        services=services_status,
    )


@router.get("/ready")
async def readiness_check():
    """
    Simple readiness check for container orchestration.

    Returns 200 if the service is ready to accept requests.
    """
    return {"ready": True}


@router.post("/test-webhook")
async def test_webhook():
    """
    Test webhook notification functionality.

    Only available in development/debug mode.
    """
    if not config.debug and config.environment == "production":
        raise HTTPException(
            status_code=404,
            detail="Endpoint not available in production mode"
        )

    if not config.error_webhook_enabled:
        raise HTTPException(
            status_code=400,
            detail="Webhook notifications are disabled"
        )

    success = await send_error_webhook(
        error_message="Test webhook notification from HEIC conversion service",
        level="INFO",
        endpoint="/api/v1/test-webhook",
        context={
            "test": True,
            "environment": config.environment,
        },
    )

    return {
        "webhook_test": "sent" if success else "failed",
        "webhook_enabled": config.error_webhook_enabled,
        "webhook_url_configured": bool(config.error_webhook_url),
    }
