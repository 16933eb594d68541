"""Middleware package for the proxy."""

from dohproxy.app.middleware.rate_limit import (
    RateLimiter,
    RateLimitMiddleware,
    RateLimitResult,
    get_client_identity,
)
from dohproxy.app.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "RateLimiter",
    "RateLimitMiddleware",
    "RateLimitResult",
    "RequestIdMiddleware",
    "get_client_identity",
    "get_request_id",
]
