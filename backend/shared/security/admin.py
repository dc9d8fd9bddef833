"""
Back-office access.

Admin endpoints require the shared secret from ADMIN_API_KEY in the
X-Admin-Key header.
"""

import hmac

from fastapi import Header, Request

from shared.config.settings import settings
from shared.utils.exceptions import ForbiddenError


def require_admin(
    request: Request,
    x_admin_key: str | None = Header(default=None, alias="X-Admin-Key"),
) -> str:
    """
    FastAPI dependency for admin routes. Returns the actor name recorded in
    the stock ledger.

    Raises:
        ForbiddenError: missing or wrong key
    """
    if not x_admin_key or not hmac.compare_digest(
        x_admin_key.encode(), settings.admin_api_key.encode()
    ):
        raise ForbiddenError("access admin endpoints", path=request.url.path)
    return "admin"
