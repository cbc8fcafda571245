"""Tests for centralized error handling."""

import json
from unittest.mock import Mock, patch

import pytest

from src.heicserver.services.error_handler import (
    ErrorDetails,
    ErrorType,
    HeicProcessingError,
    HeicServiceError,
    create_conversion_error,
    create_invalid_file_error,
    create_rate_limit_error,
    error_response,
    is_client_error,
    is_server_error,
)


class TestErrorType:
    """Test cases for ErrorType."""

    @pytest.mark.parametrize(
        "error_type,code,status",
        [
            (ErrorType.NO_FILE_PROVIDED, "NO_FILE_PROVIDED", 400),
            (ErrorType.INVALID_FILE, "INVALID_FILE", 400),
            (ErrorType.TOO_MANY_FILES, "TOO_MANY_FILES", 400),
            (ErrorType.NOT_FOUND, "NOT_FOUND", 404),
            (ErrorType.HEIC_PROCESSING_FAILED, "HEIC_PROCESSING_FAILED", 422),
            (ErrorType.CONVERSION_FAILED, "CONVERSION_FAILED", 422),
            (ErrorType.RATE_LIMITED, "RATE_LIMITED", 429),
            (ErrorType.INTERNAL_ERROR, "INTERNAL_ERROR", 500),
        ],
    )
    def test_codes_and_statuses(self, error_type, code, status):
        assert error_type.error_code == code
        assert error_type.status_code == status
        assert error_type.default_message


class TestErrorDetails:
    """Test cases for ErrorDetails."""

    def test_default_message(self):
        details = ErrorDetails(ErrorType.NO_FILE_PROVIDED)

        assert details.message == "No file provided. Please upload a HEIC image."
        assert details.status_code == 400
        assert details.to_dict() == {
            "success": False,
            "message": "No file provided. Please upload a HEIC image.",
            "error": "NO_FILE_PROVIDED",
        }

    def test_details_included_when_present(self):
        details = ErrorDetails(ErrorType.CONVERSION_FAILED, details="bad data")
        assert details.to_dict()["details"] == "bad data"

    def test_custom_message(self):
        details = ErrorDetails(ErrorType.INVALID_FILE, "File size exceeds 20MB limit")
        assert details.to_dict()["message"] == "File size exceeds 20MB limit"


class TestExceptions:
    """Test cases for service exceptions."""

    def test_service_error_carries_details(self):
        details = ErrorDetails(ErrorType.TOO_MANY_FILES)
        error = HeicServiceError(details)

        assert error.error_details is details
        assert str(error) == details.message

    def test_processing_error_development_details(self):
        with patch("src.heicserver.services.error_handler.get_config") as mock_get_config:
            mock_get_config.return_value = Mock(is_development=True)
            error = HeicProcessingError(ValueError("decode failed"))

        assert isinstance(error, HeicServiceError)
        assert error.error_details.status_code == 422
        assert error.error_details.to_dict() == {
            "success": False,
            "message": ErrorType.HEIC_PROCESSING_FAILED.default_message,
            "error": "HEIC_PROCESSING_FAILED",
            "details": "decode failed",
        }

    def test_processing_error_production_hides_details(self):
        with patch("src.heicserver.services.error_handler.get_config") as mock_get_config:
            mock_get_config.return_value = Mock(is_development=False)
            error = HeicProcessingError(ValueError("decode failed"))

        assert "details" not in error.error_details.to_dict()


class TestErrorFactories:
    """Test cases for error factory functions."""

    def test_invalid_file_error(self):
        details = create_invalid_file_error("File buffer is empty")

        assert details.error_type is ErrorType.INVALID_FILE
        assert details.message == "File buffer is empty"

    def test_conversion_error_development(self):
        with patch("src.heicserver.services.error_handler.get_config") as mock_get_config:
            mock_get_config.return_value = Mock(is_development=True)
            details = create_conversion_error(RuntimeError("encoder crashed"))

        assert details.error_type is ErrorType.CONVERSION_FAILED
        assert details.details == "encoder crashed"

    def test_conversion_error_production(self):
        with patch("src.heicserver.services.error_handler.get_config") as mock_get_config:
            mock_get_config.return_value = Mock(is_development=False)
            details = create_conversion_error(RuntimeError("encoder crashed"))

        assert details.details is None

    def test_rate_limit_error(self):
        details = create_rate_limit_error(limit=60, window="minute", retry_after=60)

        assert details.status_code == 429
        assert "Maximum 60 requests per minute" in details.message
        assert "Try again in 60 seconds" in details.message
        assert details.details == {"limit": 60, "window": "minute", "retry_after_seconds": 60}

    def test_rate_limit_error_without_retry(self):
        details = create_rate_limit_error(limit=10)
        assert "retry_after_seconds" not in details.details


class TestErrorResponse:
    """Test cases for error_response."""

    def test_response_body_and_status(self):
        response = error_response(ErrorDetails(ErrorType.NO_FILE_PROVIDED))

        assert response.status_code == 400
        body = json.loads(response.body)
        assert body["success"] is False
        assert body["error"] == "NO_FILE_PROVIDED"

    def test_response_headers(self):
        response = error_response(
            create_rate_limit_error(limit=5, retry_after=60),
            headers={"Retry-After": "60"},
        )

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"


class TestStatusHelpers:
    """Test cases for status code helpers."""

    def test_client_error(self):
        assert is_client_error(400)
        assert is_client_error(422)
        assert not is_client_error(500)

    def test_server_error(self):
        assert is_server_error(500)
        assert not is_server_error(429)
