"""Main FastAPI application for the HEIC conversion service."""

import logging
import logging.config
import traceback
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_config
from .middleware.security import RateLimitMiddleware, SecurityHeadersMiddleware
from .routes import health, heic, uploads
from .services.error_handler import HeicServiceError, error_response
from .services.heic_converter import HEIC_SUPPORTED
from .services.webhook_service import get_webhook_service, send_error_webhook

load_dotenv()
config = get_config()
logging.config.dictConfig(config.get_log_config())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    logger.info("🚀 Starting HEIC conversion service...")
    logger.info(f"✅ Configuration validated (Environment: {config.environment})")

    if HEIC_SUPPORTED:
        logger.info("✅ HEIC/HEIF decoding available")
    else:
        logger.warning("⚠️ HEIC/HEIF decoding unavailable, uploads will fail conversion")

    yield

    await get_webhook_service().close()
    logger.info("👋 Shutting down HEIC conversion service...")


app = FastAPI(
    title="HEIC Conversion Service",
    description="Converts HEIC/HEIF uploads to JPEG, PNG or WebP",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if config.enable_api_docs else None,
    redoc_url="/redoc" if config.enable_api_docs else None,
    openapi_url="/openapi.json" if config.enable_api_docs else None,
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RateLimitMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Conversion-Stats"],
)


@app.exception_handler(HeicServiceError)
async def heic_service_exception_handler(request: Request, exc: HeicServiceError):
    """Render structured service errors."""
    return error_response(exc.error_details)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions."""
    error_message = f"Unhandled exception: {str(exc)}"
    error_traceback = traceback.format_exc()

    logger.error(f"❌ {error_message}")
    logger.debug(error_traceback)

    await send_error_webhook(
        error_message=error_message,
        level="CRITICAL",
        endpoint=str(request.url.path),
        user_agent=request.headers.get("user-agent"),
        traceback=error_traceback,
        context={
            "method": request.method,
            "url": str(request.url),
            "client_ip": request.client.host if request.client else None,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": str(exc) if config.debug else "An unexpected error occurred",
            "error": "INTERNAL_ERROR",
        },
    )


app.include_router(health.router)
app.include_router(heic.router)
app.include_router(uploads.router)


@app.get("/api/v1/info")
async def api_info():
    """Get API information."""
    return {
        "name": "HEIC Conversion Service",
        "version": "1.0.0",
        "description": "Server-side HEIC/HEIF conversion for uploads",
        "endpoints": {
            "convert": "/api/heic/convert",
            "support": "/api/heic/support",
            "stats": "/api/heic/stats",
            "uploads": "/api/uploads",
            "health": "/api/v1/health",
            "docs": "/docs" if config.enable_api_docs else None,
            "redoc": "/redoc" if config.enable_api_docs else None,
        },
        "features": [
            "HEIC/HEIF to JPEG, PNG and WebP",
            "Automatic conversion of uploaded files",
            "EXIF orientation applied",
            "Conversion statistics",
        ],
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.heicserver.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_config=config.get_log_config(),
    )
