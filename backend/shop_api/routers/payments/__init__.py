"""
Payment gateway callbacks.
"""

from .paymob import router as paymob_router

__all__ = ["paymob_router"]
