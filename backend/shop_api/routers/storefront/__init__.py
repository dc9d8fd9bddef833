"""
Storefront routers: catalog, cart, checkout and guest order tracking.
"""

from .cart import router as cart_router
from .catalog import router as catalog_router
from .checkout import router as checkout_router
from .orders import router as orders_router
from .promo import router as promo_router
from .settings import router as settings_router
from .stock import router as stock_router

__all__ = [
    "cart_router",
    "catalog_router",
    "checkout_router",
    "orders_router",
    "promo_router",
    "settings_router",
    "stock_router",
]
