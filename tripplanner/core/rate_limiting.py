"""
Rate limiting

Fixed-window request limits per client IP on top of slowapi, with counters
kept in process memory.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Client address, preferring the proxy headers set by the load balancer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return get_remote_address(request)


def create_limiter(max_requests: int = 100, window_seconds: int = 60) -> Limiter:
    return Limiter(
        key_func=get_client_ip,
        default_limits=[f"{max_requests} per {window_seconds} seconds"],
        headers_enabled=True,
        strategy="fixed-window",
    )


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    # slowapi's middleware calls this synchronously
    logger.warning(f"Rate limit exceeded for {get_client_ip(request)} on {request.url.path}")
    response = JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "detail": "Too many requests. Please try again later.",
            "code": "RATE_LIMIT_EXCEEDED",
        },
    )
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)


def install_rate_limiting(app: FastAPI, limiter: Limiter) -> None:
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
