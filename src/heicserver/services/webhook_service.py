"""
Error notifications for the conversion service.

Unhandled application errors and HEIC conversion failures are POSTed as
JSON to ``ERROR_WEBHOOK_URL`` when the webhook is enabled. Delivery problems
are logged and never raised to the caller.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Optional

import httpx

from ..config import get_config

logger = logging.getLogger(__name__)

SERVICE_NAME = "heic-conversion-service"

LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}


@dataclass
class Notification:
    """One webhook message."""
    message: str
    level: str = "ERROR"
    endpoint: Optional[str] = None
    user_agent: Optional[str] = None
    context: Optional[Dict[str, Any]] = None
    traceback: Optional[str] = None

    def to_payload(self, environment: str, include_traceback: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "environment": environment,
            "service": SERVICE_NAME,
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": self.level,
            "message": self.message,
        }
        optional = {
            "endpoint": self.endpoint,
            "user_agent": self.user_agent,
            "context": self.context,
        }
        payload.update({key: value for key, value in optional.items() if value})
        if include_traceback and self.traceback:
            payload["traceback"] = self.traceback
        return payload


def conversion_failure_context(
    error: Exception,
    file: Optional[Any] = None,
    target_format: Optional[str] = None,
) -> Dict[str, Any]:
    """Describe a failed HEIC conversion: the upload, the target format and the error class."""
    size = None
    if file is not None:
        size = file.size or len(file.buffer or b"")
    return {
        "fileName": getattr(file, "originalname", None),
        "mimeType": getattr(file, "mimetype", None),
        "size": size,
        "targetFormat": target_format,
        "errorClass": type(error).__name__,
    }


def level_allowed(level: str, min_level: str = "ERROR") -> bool:
    return LEVELS.get(level.upper(), 0) >= LEVELS.get(min_level.upper(), LEVELS["ERROR"])


def is_webhook_url(url: str) -> bool:
    """Only absolute http(s) URLs with a host are accepted."""
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError):
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.host)


class RateLimiter:
    """Sliding window over the last ``window`` seconds."""

    def __init__(self, max_requests: int, window: int = 60):
        self.max_requests = max_requests
        self.window = window
        self._sent: Deque[float] = deque()

    def allow_request(self) -> bool:
        now = time.time()
        while self._sent and now - self._sent[0] >= self.window:
            self._sent.popleft()
        if len(self._sent) >= self.max_requests:
            return False
        self._sent.append(now)
        return True


class WebhookService:
    """Delivers notifications to the configured webhook."""

    def __init__(self):
        config = get_config()
        self.client = httpx.AsyncClient(timeout=config.error_webhook_timeout)
        self._rate_limiter = RateLimiter(config.error_webhook_rate_limit, window=60)

    async def send(self, notification: Notification) -> bool:
        """
        POST a notification.

        Returns:
            True if the webhook answered 200, False when disabled, filtered,
            rate limited or undeliverable
        """
        config = get_config()
        url = config.error_webhook_url
        if not config.error_webhook_enabled or not url:
            return False

        if not is_webhook_url(url):
            logger.error(f"Invalid webhook URL format: {url[:50]}...")
            return False

        if not level_allowed(notification.level, config.error_webhook_min_level):
            return False

        if not self._rate_limiter.allow_request():
            logger.warning(f"Webhook notification rate limited: {notification.message[:100]}")
            return False

        payload = notification.to_payload(
            config.error_webhook_environment_tag,
            config.error_webhook_include_traceback,
        )
        try:
            response = await self.client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Failed to send webhook notification: {e}")
            return False

        if response.status_code != 200:
            logger.warning(f"Webhook answered {response.status_code}: {response.text[:200]}")
            return False

        logger.debug(f"Webhook notification sent: {notification.message[:100]}")
        return True

    async def close(self):
        await self.client.aclose()


_webhook_service: Optional[WebhookService] = None


def get_webhook_service() -> WebhookService:
    """Get global webhook service instance."""
    global _webhook_service
    if _webhook_service is None:
        _webhook_service = WebhookService()
    return _webhook_service


async def send_error_webhook(
    error_message: str,
    level: str = "ERROR",
    endpoint: Optional[str] = None,
    user_agent: Optional[str] = None,
    traceback: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
) -> bool:
    """Report an application error."""
    return await get_webhook_service().send(
        Notification(
            message=error_message,
            level=level,
            endpoint=endpoint,
            user_agent=user_agent,
            context=context,
            traceback=traceback,
        )
    )


async def send_conversion_failure_webhook(
    error: Exception,
    file: Optional[Any] = None,
    target_format: Optional[str] = None,
    endpoint: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> bool:
    """Report a failed HEIC conversion with the failing upload's details."""
    name = getattr(file, "originalname", None) or "unknown file"
    return await get_webhook_service().send(
        Notification(
            message=f"HEIC conversion failed for {name}: {error}",
            endpoint=endpoint,
            user_agent=user_agent,
            context=conversion_failure_context(error, file, target_format),
        )
    )
