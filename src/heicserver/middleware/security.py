"""Security middleware for rate limiting and security headers."""

import time
from collections import defaultdict
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..config import get_config
from ..services.error_handler import create_rate_limit_error, error_response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware to prevent abuse."""

    def __init__(self, app):
        super().__init__(app)
        self.requests = defaultdict(list)  # IP -> list of request timestamps
        self.window = 60  # 1 minute window

    async def dispatch(self, request: Request, call_next: Callable):
        config = get_config()
        if not config.rate_limit_enabled:
            return await call_next(request)

        client_ip = self._get_client_ip(request)
        current_time = time.time()

        # Clean old requests outside the window
        self.requests[client_ip] = [
            req_time for req_time in self.requests[client_ip]
            if current_time - req_time < self.window
        ]

        if len(self.requests[client_ip]) >= config.rate_limit_per_minute + config.rate_limit_burst:
            return error_response(
                create_rate_limit_error(
                    limit=config.rate_limit_per_minute,
                    window="minute",
                    retry_after=self.window,
                ),
                headers={
                    "Retry-After": str(self.window),
                    "X-RateLimit-Limit": str(config.rate_limit_per_minute),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(int(current_time + self.window)),
                },
            )

        self.requests[client_ip].append(current_time)

        response = await call_next(request)

        remaining = max(0, config.rate_limit_per_minute - len(self.requests[client_ip]))
        response.headers["X-RateLimit-Limit"] = str(config.rate_limit_per_minute)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(int(current_time + self.window))

        return response

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP from request."""
        # Check for forwarded headers (for reverse proxies)
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # Take the first IP in the chain
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to responses."""

    async def dispatch(self, request: Request, call_next: Callable):
        config = get_config()
        response = await call_next(request)

        security_headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Referrer-Policy": "strict-origin-when-cross-origin",
            "Cross-Origin-Resource-Policy": "cross-origin",
        }

        if config.is_production:
            csp = (
                "default-src 'self'; "
                "img-src 'self' data: blob: https:; "
                "media-src 'self' blob:; "
                "worker-src 'self' blob:; "
                "connect-src 'self'; "
                "object-src 'none'; "
                "frame-ancestors 'none'; "
                "base-uri 'self'"
            )
        else:
            csp = (
                "default-src 'self' 'unsafe-inline' 'unsafe-eval'; "
                "img-src 'self' data: blob: *; "
                "connect-src 'self' *; "
                "frame-ancestors 'none'"
            )

        security_headers["Content-Security-Policy"] = csp

        if config.is_production and request.url.scheme == "https":
            security_headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        for header, value in security_headers.items():
            response.headers[header] = value

        return response
