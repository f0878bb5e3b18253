"""Rate limiting configuration for the ShopCore API.

Uses slowapi. Point RATE_LIMIT_STORAGE_URI at Redis to share limits across
instances; the default in-memory storage is per process.
"""

from functools import lru_cache
from typing import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from libs.common.config import get_settings


def _get_client_ip(request: Request) -> str:
    """
    Get client IP from request, handling proxies.

    Checks X-Forwarded-For header first (for proxied requests),
    then falls back to direct connection IP.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Take the first IP in the chain (original client)
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


@lru_cache
def get_limiter() -> Limiter:
    """
    Create and return a cached Limiter instance.
    """
    settings = get_settings()

    return Limiter(
        key_func=_get_client_ip,
        default_limits=["60/minute"],
        storage_uri=settings.RATE_LIMIT_STORAGE_URI,
        strategy="fixed-window",
        enabled=settings.RATE_LIMIT_ENABLED,
    )


limiter = get_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """
    Custom handler for rate limit exceeded errors.

    Returns the standard error envelope with a Retry-After header.
    """
    retry_after = exc.detail.split("per")[0].strip() if exc.detail else "1 minute"

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": {
                "code": "RATE_LIMIT_EXCEEDED",
                "message": f"Rate limit exceeded. Try again in {retry_after}.",
            },
        },
        headers={"Retry-After": str(getattr(exc, "retry_after", 60))},
    )


# Decorator shortcuts for common rate limit tiers
def payment_limit(func: Callable) -> Callable:
    """Apply strict rate limit for payment endpoints (10/minute)."""
    return limiter.limit("10/minute")(func)


def write_limit(func: Callable) -> Callable:
    """Apply rate limit for write endpoints (50/minute)."""
    return limiter.limit("50/minute")(func)


def read_limit(func: Callable) -> Callable:
    """Apply relaxed rate limit for read endpoints (100/minute)."""
    return limiter.limit("100/minute")(func)
