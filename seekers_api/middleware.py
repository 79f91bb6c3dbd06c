import logging
import time
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .application.ports.rate_limiter import RateLimiter
from .core.config import settings
from .core.messages import get_message
from .exceptions import create_error_response
from .infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter
from .infrastructure.rate_limit.redis_rate_limiter import RedisRateLimiter

logger = logging.getLogger(__name__)

# Probes stay reachable regardless of client volume
RATE_LIMIT_EXEMPT_PATHS = {"/health"}


def build_rate_limiter() -> RateLimiter:
    if settings.REDIS_URL:
        logger.info("Using Redis rate limiter")
        return RedisRateLimiter(settings.REDIS_URL)
    return InMemoryRateLimiter()


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, limiter: Optional[RateLimiter] = None, per_minute: Optional[int] = None):
        super().__init__(app)
        self.limiter = limiter or build_rate_limiter()
        self.rate_limit = per_minute or settings.RATE_LIMIT_PER_MINUTE

    async def dispatch(self, request: Request, call_next):
        if request.url.path in RATE_LIMIT_EXEMPT_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        if not self.limiter.allow(f"ip:{client_ip}", self.rate_limit, 60):
            logger.warning(f"Rate limit exceeded for IP: {client_ip}")
            return JSONResponse(
                status_code=429,
                content=create_error_response(get_message("RATE_LIMIT_EXCEEDED"), "RATE_LIMIT_EXCEEDED"),
            )
        return await call_next(request)


class SecurityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        client_host = request.client.host if request.client else "unknown"

        response = await call_next(request)

        duration = time.time() - start_time
        logger.info(f"{request.method} {request.url.path} from {client_host} -> {response.status_code} in {duration:.3f}s")
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled error on {request.method} {request.url.path}: {e}", exc_info=True)
            message = f"{get_message('INTERNAL_ERROR')}: {e}" if settings.DEBUG else get_message("INTERNAL_ERROR")
            return JSONResponse(status_code=500, content=create_error_response(message, "INTERNAL_ERROR"))


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length is not None:
            try:
                size = int(content_length)
            except ValueError:
                size = 0
            if size > settings.MAX_REQUEST_SIZE:
                return JSONResponse(
                    status_code=413,
                    content=create_error_response(get_message("REQUEST_TOO_LARGE"), "REQUEST_TOO_LARGE"),
                )
        return await call_next(request)
