"""Centralized error handling for the HEIC conversion service."""

import logging
from enum import Enum
from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

from ..config import get_config

logger = logging.getLogger(__name__)


class ErrorType(Enum):
    """Enumeration of error types with their characteristics."""

    # Client Errors (4xx)
    NO_FILE_PROVIDED = ("NO_FILE_PROVIDED", 400, "No file provided. Please upload a HEIC image.")
    INVALID_FILE = ("INVALID_FILE", 400, "Invalid HEIC file")
    TOO_MANY_FILES = ("TOO_MANY_FILES", 400, "Too many files uploaded")
    NOT_FOUND = ("NOT_FOUND", 404, "Requested resource is not available")
    HEIC_PROCESSING_FAILED = (
        "HEIC_PROCESSING_FAILED",
        422,
        "Failed to process HEIC image. Please try uploading a JPEG or PNG image.",
    )
    CONVERSION_FAILED = (
        "CONVERSION_FAILED",
        422,
        "Failed to convert HEIC image. Please try uploading a JPEG or PNG image.",
    )
    RATE_LIMITED = ("RATE_LIMITED", 429, "Rate limit exceeded")

    # Server Errors (5xx)
    INTERNAL_ERROR = ("INTERNAL_ERROR", 500, "An unexpected error occurred")

    def __init__(self, error_code: str, status_code: int, default_message: str):
        self.error_code = error_code
        self.status_code = status_code
        self.default_message = default_message


class ErrorDetails:
    """Structured error details for consistent API responses."""

    def __init__(
        self,
        error_type: ErrorType,
        message: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        self.error_type = error_type
        self.message = message or error_type.default_message
        self.details = details

    @property
    def status_code(self) -> int:
        return self.error_type.status_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error details to dictionary for JSON response."""
        response = {
            "success": False,
            "message": self.message,
            "error": self.error_type.error_code,
        }

        if self.details is not None:
            response["details"] = self.details

        return response


class HeicServiceError(Exception):
    """Base exception for service errors with structured details."""

    def __init__(self, error_details: ErrorDetails):
        self.error_details = error_details
        super().__init__(error_details.message)


class HeicProcessingError(HeicServiceError):
    """Upload interception failed; the request is aborted with 422."""

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(
            ErrorDetails(
                error_type=ErrorType.HEIC_PROCESSING_FAILED,
                details=str(cause) if include_details() else None,
            )
        )


def include_details() -> bool:
    """Technical error details are only exposed in development mode."""
    return get_config().is_development


def create_invalid_file_error(message: str) -> ErrorDetails:
    """Create a validation failure error."""
    return ErrorDetails(error_type=ErrorType.INVALID_FILE, message=message)


def create_conversion_error(error: Exception) -> ErrorDetails:
    """Create a conversion failure error, with details in development only."""
    return ErrorDetails(
        error_type=ErrorType.CONVERSION_FAILED,
        details=str(error) if include_details() else None,
    )


def create_rate_limit_error(
    limit: int,
    window: str = "minute",
    retry_after: Optional[int] = None,
) -> ErrorDetails:
    """Create a standardized rate limit error."""
    message = f"Rate limit exceeded. Maximum {limit} requests per {window}."
    details = {
        "limit": limit,
        "window": window,
    }

    if retry_after:
        details["retry_after_seconds"] = retry_after
        message += f" Try again in {retry_after} seconds."

    return ErrorDetails(
        error_type=ErrorType.RATE_LIMITED,
        message=message,
        details=details,
    )


def error_response(
    error_details: ErrorDetails,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Build a JSON response for structured error details."""
    log_message = f"{error_details.error_type.error_code}: {error_details.message}"

    if error_details.status_code >= 500:
        logger.error(log_message)
    elif error_details.status_code == 429:
        logger.warning(f"Rate limit: {log_message}")
    else:
        logger.info(f"Client error: {log_message}")

    return JSONResponse(
        status_code=error_details.status_code,
        content=error_details.to_dict(),
        headers=headers,
    )


def is_client_error(status_code: int) -> bool:
    """Check if status code represents a client error (4xx)."""
    return 400 <= status_code < 500


def is_server_error(status_code: int) -> bool:
    """Check if status code represents a server error (5xx)."""
    return status_code >= 500
