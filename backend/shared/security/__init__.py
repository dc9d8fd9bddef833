"""
Security module: admin access and rate limiting.
"""

from shared.security.admin import require_admin
from shared.security.rate_limit import limiter, rate_limit_exceeded_handler

__all__ = [
    # admin
    "require_admin",
    # rate_limit
    "limiter",
    "rate_limit_exceeded_handler",
]
