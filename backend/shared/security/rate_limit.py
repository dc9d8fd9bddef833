"""
Rate limiting with slowapi, keyed by client IP.
Protects the public storefront endpoints from abuse.

Common limits:
- "10/minute" checkout and payment retries
- "30/minute" cart writes and promo validation
- "100/minute" read-only public data

Usage in a router:
    from shared.security.rate_limit import limiter

    @router.post("/checkout")
    @limiter.limit("10/minute")
    def checkout(request: Request, ...):
        ...
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from shared.config.logging import get_logger
from shared.config.settings import settings

logger = get_logger(__name__)

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

RETRY_AFTER_SECONDS = 60


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """JSON 429 with the limit that was hit."""
    logger.warning(
        "Rate limit exceeded",
        path=request.url.path,
        client=get_remote_address(request),
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Too many requests, please try again later",
            "code": "rate_limited",
            "limit": str(exc.detail),
        },
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )
