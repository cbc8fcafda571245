"""Configuration management for the HEIC conversion service."""
import os
from functools import lru_cache

# Load environment variables first
from dotenv import load_dotenv
load_dotenv()

SUPPORTED_OUTPUT_FORMATS = ("jpeg", "jpg", "png", "webp")


class Config:
    """Application configuration with environment variable support."""

    def __init__(self):
        # Server Configuration
        self.host = os.getenv("HOST", "0.0.0.0")
        self.port = int(os.getenv("PORT", "8000"))
        self.environment = os.getenv("ENVIRONMENT", "production")
        self.debug = os.getenv("DEBUG", "false").lower() == "true"

        # HEIC conversion
        self.heic_quality = int(os.getenv("HEIC_QUALITY", "85"))
        self.heic_max_size_mb = int(os.getenv("HEIC_MAX_SIZE_MB", "20"))
        self.heic_output_format = os.getenv("HEIC_OUTPUT_FORMAT", "jpeg").strip().lower()
        self.heic_skip_client_converted = os.getenv("HEIC_SKIP_CLIENT_CONVERTED", "true").lower() == "true"
        self.heic_enable_stats = os.getenv("HEIC_ENABLE_STATS", "true").lower() == "true"
        self.max_upload_files = int(os.getenv("MAX_UPLOAD_FILES", "10"))

        # Rate Limiting
        self.rate_limit_per_minute = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))
        self.rate_limit_burst = int(os.getenv("RATE_LIMIT_BURST", "20"))
        self.rate_limit_enabled = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

        # Security Configuration
        self.cors_origins = os.getenv("CORS_ORIGINS", "*").split(",")
        self.enable_api_docs = os.getenv("ENABLE_API_DOCS", "true").lower() == "true"

        # Monitoring and Logging
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        # Error Notification Hooks
        self.error_webhook_url = os.getenv("ERROR_WEBHOOK_URL", "")
        self.error_webhook_enabled = os.getenv("ERROR_WEBHOOK_ENABLED", "false").lower() == "true"
        self.error_webhook_timeout = int(os.getenv("ERROR_WEBHOOK_TIMEOUT", "10"))
        self.error_webhook_min_level = os.getenv("ERROR_WEBHOOK_MIN_LEVEL", "ERROR")
        self.error_webhook_include_traceback = os.getenv("ERROR_WEBHOOK_INCLUDE_TRACEBACK", "true").lower() == "true"
        self.error_webhook_rate_limit = int(os.getenv("ERROR_WEBHOOK_RATE_LIMIT", "5"))
        self.error_webhook_environment_tag = os.getenv("ERROR_WEBHOOK_ENVIRONMENT_TAG", "production")

    def validate(self):
        """Validate configuration values."""
        errors = []

        if self.heic_output_format not in SUPPORTED_OUTPUT_FORMATS:
            errors.append(
                f"HEIC_OUTPUT_FORMAT must be one of {', '.join(SUPPORTED_OUTPUT_FORMATS)} "
                f"(got '{self.heic_output_format}')"
            )

        if not 1 <= self.heic_quality <= 100:
            errors.append(f"HEIC_QUALITY must be between 1 and 100 (got {self.heic_quality})")

        if self.heic_max_size_mb <= 0:
            errors.append(f"HEIC_MAX_SIZE_MB must be positive (got {self.heic_max_size_mb})")

        if self.max_upload_files <= 0:
            errors.append(f"MAX_UPLOAD_FILES must be positive (got {self.max_upload_files})")

        if errors:
            raise ValueError(f"Configuration errors: {'; '.join(errors)}")

    @property
    def heic_max_size_bytes(self) -> int:
        """Validation ceiling for HEIC uploads in bytes."""
        return self.heic_max_size_mb * 1024 * 1024

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    def get_log_config(self) -> dict:
        """Get logging configuration."""
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                },
                "json": {
                    "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                    "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": self.log_level,
                    "formatter": "json" if self.is_production else "default",
                    "stream": "ext://sys.stdout",
                },
            },
            "root": {
                "level": self.log_level,
                "handlers": ["console"],
            },
        }


@lru_cache()
def get_config() -> Config:
    """Get cached configuration instance."""
    config = Config()
    config.validate()
    return config
