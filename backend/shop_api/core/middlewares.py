"""
HTTP middlewares: security headers and JSON content-type enforcement.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from shared.config.settings import settings


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Standard hardening headers on every response; HSTS in production only."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        response.headers.pop("server", None)

        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class ContentTypeValidationMiddleware(BaseHTTPMiddleware):
    """Bodies of POST/PUT/PATCH must be JSON (415 otherwise)."""

    METHODS_WITH_BODY = {"POST", "PUT", "PATCH"}
    # Gateway callbacks post whatever the gateway sends
    EXEMPT_PATHS = ("/api/payments/",)

    async def dispatch(self, request: Request, call_next):
        if request.method in self.METHODS_WITH_BODY and not request.url.path.startswith(self.EXEMPT_PATHS):
            content_type = request.headers.get("content-type", "")
            if content_type and not content_type.startswith("application/json"):
                return JSONResponse(
                    status_code=415,
                    content={
                        "detail": "Unsupported Media Type. Use application/json",
                        "code": "unsupported_media_type",
                    },
                )
        return await call_next(request)


def register_middlewares(app: FastAPI) -> None:
    """Middlewares run in reverse registration order: content type first."""
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ContentTypeValidationMiddleware)
